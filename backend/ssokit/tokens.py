"""Signed, self-contained SSO and app-session tokens.

Both token kinds carry the same identity claims and differ only by ``typ``
and lifetime. Validity is signature + expiry; nothing is stored.
"""

import logging
from datetime import datetime, timezone

from jose import JWTError, jwt
from pydantic import BaseModel, Field, ValidationError

from ssokit.errors import Expired, Malformed, Unauthenticated

logger = logging.getLogger(__name__)

JWT_ALG = "HS256"
SSO_TOKEN_TYPE = "sso"
APP_SESSION_TYPE = "app_session"

_DECODE_OPTIONS = {
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_aud": False,
}


class SSOClaims(BaseModel):
    user_id: str = Field(min_length=1)
    client_id: str | None = None
    app_slug: str = Field(min_length=1)
    role: str = Field(min_length=1)
    iat: int
    exp: int


def encode_claims(claims: SSOClaims, *, typ: str, secret: str) -> str:
    payload = claims.model_dump(exclude_none=True)
    payload["typ"] = typ
    return jwt.encode(payload, secret, algorithm=JWT_ALG)


def issue_sso_token(
    user_id: str,
    app_slug: str,
    role: str,
    client_id: str | None = None,
    *,
    secret: str,
    ttl_seconds: int,
    now: int,
) -> str:
    claims = SSOClaims(
        user_id=user_id,
        client_id=client_id,
        app_slug=app_slug,
        role=role,
        iat=now,
        exp=now + ttl_seconds,
    )
    token = encode_claims(claims, typ=SSO_TOKEN_TYPE, secret=secret)
    logger.info(
        "SSO token issued user_id=%s app_slug=%s at=%s",
        user_id,
        app_slug,
        datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
    )
    return token


def decode_claims(
    token: str | None,
    *,
    secret: str,
    expected_typ: str,
    now: int,
    leeway: int,
) -> SSOClaims:
    if not token:
        raise Unauthenticated("Missing token")

    # Reject on the header before touching the signature: only one algorithm
    # is ever accepted, whatever the token claims.
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise Malformed("Unreadable token header") from exc
    if header.get("alg") != JWT_ALG:
        raise Malformed("Unexpected signing algorithm")

    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALG], options=_DECODE_OPTIONS)
    except JWTError as exc:
        raise Malformed("Invalid token signature") from exc

    if payload.get("typ") != expected_typ:
        raise Malformed("Unexpected token type")

    try:
        claims = SSOClaims.model_validate(payload)
    except ValidationError as exc:
        raise Malformed("Missing or invalid token claims") from exc

    if claims.exp <= claims.iat:
        raise Malformed("Token lifetime is empty")
    if claims.iat > now + leeway:
        raise Malformed("Token issued in the future")
    if claims.exp + leeway <= now:
        raise Expired("Token expired")

    return claims
