import os
import uuid
from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient
from starlette.requests import Request

# Settings are read once; set test values before any greedhunter import.
os.environ.setdefault("MONGODB_DB_NAME", "greedhunter_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ.setdefault("EVENT_BUS_BACKEND", "log")

CHROME_WINDOWS_UA = "Mozilla/5.0 (Windows NT 10.0) AppleWebKit/537.36 Chrome/100.0 Safari/537.36"


def make_request(
    headers: dict[str, str] | None = None,
    client: tuple[str, int] | None = ("203.0.113.9", 50000),
    method: str = "GET",
    path: str = "/v1/test",
) -> Request:
    """Starlette request built straight from an ASGI scope."""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
        "server": ("test", 80),
        "scheme": "http",
    }
    return Request(scope)


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database bound to every document model."""
    from greedhunter.db.init import init_db
    from greedhunter.events import dispatcher
    client = AsyncMongoMockClient()
    database = client[f"greedhunter_test_{uuid.uuid4().hex[:8]}"]
    await init_db(database)
    yield database
    await dispatcher.drain()


@pytest_asyncio.fixture
async def user_factory(db):
    from greedhunter.models.user import User

    async def _make(username: str | None = None, role: str = "user") -> User:
        name = username or f"hunter_{uuid.uuid4().hex[:6]}"
        user = User(username=name, email=f"{name}@example.com", password_hash="x", role=role)
        await user.insert()
        return user

    return _make


@pytest_asyncio.fixture
async def client(db) -> AsyncGenerator[AsyncClient, None]:
    from greedhunter.main import app
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
