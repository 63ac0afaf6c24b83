from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from greedhunter.core.config import get_settings
from greedhunter.core.request_context import ACCESS_TOKEN_COOKIE
from greedhunter.deps import REFRESH_TOKEN_COOKIE, get_current_user
from greedhunter.models.user import User
from greedhunter.services import users as user_service

router = APIRouter()


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str
    phone: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str | None = None


def _user_out(user: User) -> dict:
    return {
        "id": str(user.id),
        "username": user.username,
        "email": user.email,
        "phone": user.phone,
        "role": user.role,
    }


def _set_session_cookies(response: Response, user: User) -> dict:
    settings = get_settings()
    access_token, refresh_token = user_service.issue_tokens(user)
    secure = settings.cookie_secure or settings.is_production
    samesite = "none" if secure else "lax"
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=access_token,
        max_age=settings.access_token_max_age,
        httponly=True,
        secure=secure,
        samesite=samesite,
        path="/",
    )
    response.set_cookie(
        key=REFRESH_TOKEN_COOKIE,
        value=refresh_token,
        max_age=settings.refresh_token_max_age,
        httponly=True,
        secure=secure,
        samesite=samesite,
        path="/",
    )
    return {"access_token": access_token, "refresh_token": refresh_token}


@router.post("/register", status_code=201)
async def auth_register(body: RegisterRequest, request: Request, response: Response):
    """Create account and wallet; set session cookies."""
    user = await user_service.register_user(body.username, body.email, body.password, body.phone, request)
    tokens = _set_session_cookies(response, user)
    return {"user": _user_out(user), **tokens}


@router.post("/login")
async def auth_login(body: LoginRequest, request: Request, response: Response):
    user = await user_service.authenticate(body.email, body.password, request)
    tokens = _set_session_cookies(response, user)
    return {"user": _user_out(user), **tokens}


@router.post("/refresh")
async def auth_refresh(request: Request, response: Response, body: RefreshRequest | None = None):
    """Exchange a refresh token (cookie or body) for a new token pair."""
    token = request.cookies.get(REFRESH_TOKEN_COOKIE) or (body.refresh_token if body else None)
    user = await user_service.user_from_refresh_token(token)
    tokens = _set_session_cookies(response, user)
    return {"user": _user_out(user), **tokens}


@router.post("/logout")
async def auth_logout(request: Request, response: Response, user: User = Depends(get_current_user)):
    await user_service.logout(user, request)
    response.delete_cookie(ACCESS_TOKEN_COOKIE, path="/")
    response.delete_cookie(REFRESH_TOKEN_COOKIE, path="/")
    return {"message": "Logged out"}


@router.get("/me")
async def auth_me(user: User = Depends(get_current_user)):
    """Return current user. Requires session cookie or bearer token."""
    return _user_out(user)
