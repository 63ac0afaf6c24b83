"""Shared FastAPI dependencies."""

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import Request

from greedhunter.core.exceptions import BadRequestError, ForbiddenError, UnauthorizedError
from greedhunter.core.logging import bind_user_id
from greedhunter.core.request_context import ACCESS_TOKEN_COOKIE
from greedhunter.core.security import load_access_token
from greedhunter.models.user import User

REFRESH_TOKEN_COOKIE = "refreshToken"


def _token_from_request(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


async def get_current_user(request: Request) -> User:
    """Dependency: accept a bearer header or the access token cookie and return User."""
    token = _token_from_request(request)
    if not token:
        raise UnauthorizedError("Not authenticated")
    payload = load_access_token(token)
    if not payload:
        raise UnauthorizedError("Invalid or expired session")
    user_id = payload.get("user_id")
    if not user_id:
        raise UnauthorizedError("Invalid session")
    try:
        user = await User.get(PydanticObjectId(user_id))
    except InvalidId:
        raise UnauthorizedError("Invalid session")
    if not user:
        raise UnauthorizedError("User not found")
    if payload.get("session_version") != user.session_version:
        raise UnauthorizedError("Session invalidated")
    bind_user_id(str(user.id))
    return user


async def require_admin(request: Request) -> User:
    """Dependency: require current user to have role admin or super_admin."""
    user = await get_current_user(request)
    if not user.is_admin:
        raise ForbiddenError("Admin only")
    return user


def parse_object_id(value: str, field: str = "id") -> PydanticObjectId:
    """Path/body ids: malformed values are a 400, not a 500."""
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        raise BadRequestError(f"Invalid {field}")
