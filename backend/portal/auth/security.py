import secrets
from datetime import datetime, timedelta
from hashlib import sha256
from typing import Any, Dict

from jose import JWTError, jwt
from passlib.context import CryptContext

from portal.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)

ENV = settings.ENV
JWT_SECRET = settings.JWT_SECRET
if not JWT_SECRET and ENV != "dev":
    raise RuntimeError("JWT_SECRET is not set")
if not JWT_SECRET:
    JWT_SECRET = "dev-portal-session-secret-change-me"
JWT_ALG = "HS256"
JWT_ACCESS_EXP_MINUTES = settings.JWT_ACCESS_EXP_MINUTES


def _ensure_bcrypt_limit(password: str) -> None:
    # bcrypt limit is 72 BYTES, not characters
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Password too long (max 72 bytes).")


def hash_password(password: str) -> str:
    _ensure_bcrypt_limit(password)
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    _ensure_bcrypt_limit(password)
    return pwd_context.verify(password, password_hash)


def generate_password() -> str:
    return secrets.token_urlsafe(18)


def create_access_token(payload: Dict[str, Any]) -> str:
    to_encode = dict(payload)
    to_encode["typ"] = "access"
    to_encode["iat"] = datetime.utcnow()
    to_encode["exp"] = datetime.utcnow() + timedelta(minutes=JWT_ACCESS_EXP_MINUTES)
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALG)


def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])


def hash_token(token: str) -> str:
    return sha256(token.encode("utf-8")).hexdigest()


__all__ = [
    "JWTError",
    "create_access_token",
    "decode_token",
    "generate_password",
    "hash_password",
    "hash_token",
    "verify_password",
]
