from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field

ROLES = ("user", "admin", "super_admin")
ADMIN_ROLES = ("admin", "super_admin")


class User(Document):
    username: Indexed(str, unique=True)
    email: Indexed(str, unique=True)
    phone: str | None = None
    password_hash: str
    role: str = "user"  # "user" | "admin" | "super_admin"
    session_version: int = 0
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES
