import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from greedhunter.core.config import get_settings
from greedhunter.models.activity_log import ActivityLog
from greedhunter.models.failed_event import FailedEvent
from greedhunter.models.user import User
from greedhunter.models.wallet import Wallet

DOCUMENT_MODELS = [
    User,
    Wallet,
    ActivityLog,
    FailedEvent,
]

_client: AsyncIOMotorClient | None = None


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


async def init_db(database=None) -> None:
    """Bind the document models. Pass a database handle to skip building a client from settings."""
    global _client
    if database is None:
        settings = get_settings()
        kwargs = {}
        if _use_tls(settings.mongodb_uri):
            kwargs["tlsCAFile"] = certifi.where()
            kwargs["tlsDisableOCSPEndpointCheck"] = True
        _client = AsyncIOMotorClient(settings.mongodb_uri, **kwargs)
        database = _client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)


def close_db() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
