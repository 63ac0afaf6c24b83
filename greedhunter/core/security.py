import hashlib
from typing import Any

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext

from greedhunter.core.config import get_settings

ACCESS_TOKEN_SALT = "greedhunter-access"
REFRESH_TOKEN_SALT = "greedhunter-refresh"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _serializer(salt: str) -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(
        settings.secret_key,
        salt=salt,
        signer_kwargs={"key_derivation": "hmac", "digest_method": hashlib.sha256},
    )


def create_access_token(payload: dict[str, Any]) -> str:
    return _serializer(ACCESS_TOKEN_SALT).dumps(payload)


def create_refresh_token(payload: dict[str, Any]) -> str:
    return _serializer(REFRESH_TOKEN_SALT).dumps(payload)


def load_access_token(token: str) -> dict[str, Any] | None:
    try:
        return _serializer(ACCESS_TOKEN_SALT).loads(token, max_age=get_settings().access_token_max_age)
    except (BadSignature, SignatureExpired):
        return None


def load_refresh_token(token: str) -> dict[str, Any] | None:
    try:
        return _serializer(REFRESH_TOKEN_SALT).loads(token, max_age=get_settings().refresh_token_max_age)
    except (BadSignature, SignatureExpired):
        return None
