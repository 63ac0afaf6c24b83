"""Request metadata for activity records: session token, client IP, user agent."""

from typing import Any

from pydantic import BaseModel

from greedhunter.core.logging import get_logger

log = get_logger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"
LOOPBACK_ADDRESSES = ("::1", "127.0.0.1")


class RequestContext(BaseModel):
    token: str | None = None
    user_agent: str = ""
    ip_address: str = ""
    method: str = ""
    path: str = ""


class UserAgentInfo(BaseModel):
    device: str = ""
    browser: str = ""
    platform: str = ""


def parse_user_agent(user_agent: str | None) -> UserAgentInfo:
    """Classify a raw User-Agent by case-insensitive substring matching."""
    if not user_agent:
        return UserAgentInfo()
    ua = user_agent.lower()

    if "chrome" in ua and "edg" not in ua:
        browser = "Chrome"
    elif "firefox" in ua:
        browser = "Firefox"
    elif "safari" in ua and "chrome" not in ua:
        browser = "Safari"
    elif "edg" in ua:
        browser = "Edge"
    else:
        browser = "Unknown"

    if "windows" in ua:
        platform = "Windows"
    elif "mac" in ua:
        platform = "MacOS"
    elif "linux" in ua:
        platform = "Linux"
    elif "android" in ua:
        platform = "Android"
    elif "iphone" in ua or "ipad" in ua:
        platform = "iOS"
    else:
        platform = "Unknown"

    device = "Mobile" if "mobile" in ua else "Desktop"
    return UserAgentInfo(device=device, browser=browser, platform=platform)


def _bearer_token(request: Any) -> str | None:
    auth = request.headers.get("authorization") or ""
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None


def client_ip(request: Any) -> str:
    """Proxy headers first, then the transport peer; loopback reads as "localhost"."""
    headers = request.headers
    client = getattr(request, "client", None)
    ip = (
        headers.get("x-forwarded-for")
        or headers.get("x-real-ip")
        or (client.host if client else None)
        or ""
    )
    if "," in ip:
        ip = ip.split(",")[0]
    ip = ip.strip()
    if ip in LOOPBACK_ADDRESSES:
        return "localhost"
    return ip


def extract_request_context(request: Any | None, fallback_session_id: str | None = None) -> RequestContext:
    """Derive token, IP, user agent, method and path from a Starlette request.

    Never raises: fields that cannot be read degrade to empty values.
    """
    if request is None:
        return RequestContext(token=fallback_session_id or None)
    try:
        token = _bearer_token(request) or request.cookies.get(ACCESS_TOKEN_COOKIE) or fallback_session_id
        return RequestContext(
            token=token or None,
            user_agent=request.headers.get("user-agent") or "",
            ip_address=client_ip(request),
            method=getattr(request, "method", "") or "",
            path=request.url.path or "",
        )
    except Exception as e:
        log.warning("request_context_unreadable", error=str(e))
        return RequestContext(token=fallback_session_id or None)
