from datetime import datetime
from typing import Any

from beanie import PydanticObjectId
from pymongo.errors import DuplicateKeyError

from greedhunter.core.exceptions import BadRequestError, ConflictError, UnauthorizedError
from greedhunter.core.logging import get_logger
from greedhunter.core.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    load_refresh_token,
    verify_password,
)
from greedhunter.models.user import User
from greedhunter.services import activity
from greedhunter.services import wallets as wallet_service

log = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


def session_payload_for_user(user: User) -> dict:
    return {"user_id": str(user.id), "session_version": user.session_version}


def issue_tokens(user: User) -> tuple[str, str]:
    """Return (access_token, refresh_token) bound to the user's current session version."""
    payload = session_payload_for_user(user)
    return create_access_token(payload), create_refresh_token(payload)


async def register_user(
    username: str,
    email: str,
    password: str,
    phone: str | None = None,
    request: Any | None = None,
) -> User:
    """Create the user and an empty wallet."""
    if not username or not email or not password:
        raise BadRequestError("All fields are required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    email = email.strip().lower()
    existing = await User.find_one({"$or": [{"email": email}, {"username": username}]})
    if existing:
        field = "email" if existing.email == email else "username"
        raise ConflictError(f"User already exists with the same {field}")
    user = User(username=username, email=email, phone=phone, password_hash=hash_password(password))
    try:
        await user.insert()
    except DuplicateKeyError as e:
        raise ConflictError("User already exists") from e
    await wallet_service.create_wallet(user.id)
    log.info("user_created", user_id=str(user.id), email=user.email)
    await activity.log_activity(user.id, activity.REGISTER, f"{user.username} registered", request, "user", user.id)
    return user


async def authenticate(email: str, password: str, request: Any | None = None) -> User:
    if not email or not password:
        raise BadRequestError("Please fill in all fields")
    user = await User.find_one(User.email == email.strip().lower())
    if not user or not verify_password(password, user.password_hash):
        raise UnauthorizedError("Invalid credentials")
    user.last_login_at = datetime.utcnow()
    user.updated_at = datetime.utcnow()
    await user.save()
    log.info("user_login", user_id=str(user.id), email=user.email)
    await activity.log_activity(user.id, activity.LOGIN, f"{user.username} logged in", request, "user", user.id)
    return user


async def user_from_refresh_token(token: str | None) -> User:
    payload = load_refresh_token(token) if token else None
    if not payload or not payload.get("user_id"):
        raise UnauthorizedError("Invalid or expired refresh token")
    user = await User.get(PydanticObjectId(payload["user_id"]))
    if not user or payload.get("session_version") != user.session_version:
        raise UnauthorizedError("Session invalidated")
    return user


async def logout(user: User, request: Any | None = None) -> None:
    """Invalidate every token issued so far for this user."""
    user.session_version += 1
    user.updated_at = datetime.utcnow()
    await user.save()
    log.info("user_logout", user_id=str(user.id))
    await activity.log_activity(user.id, activity.LOGOUT, f"{user.username} logged out", request, "user", user.id)
