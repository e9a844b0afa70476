import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from ssokit.clock import MonotonicClock
from ssokit.config import SSOSettings
from ssokit.errors import WrongAudience
from ssokit.tokens import (
    APP_SESSION_TYPE,
    SSO_TOKEN_TYPE,
    SSOClaims,
    decode_claims,
    encode_claims,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExchangeResult:
    session_token: str
    claims: SSOClaims
    max_age: int


class SSOExchanger:
    """Verifier/exchanger that runs inside one downstream app.

    ``exchange`` turns a short-lived SSO token minted by the portal into a
    long-lived app session token; ``verify_session`` is the per-request guard
    for that session token. Both raise ``SSOError`` subclasses on failure.
    """

    def __init__(
        self,
        app_slug: str,
        settings: SSOSettings,
        clock: Callable[[], int] | None = None,
    ) -> None:
        if not app_slug:
            raise ValueError("app_slug is required")
        self.app_slug = app_slug
        self.settings = settings
        self._clock = clock or MonotonicClock()

    @property
    def _session_secret(self) -> str:
        return self.settings.APP_SESSION_SECRET or self.settings.JWT_SECRET

    def _check_audience(self, claims: SSOClaims) -> None:
        if claims.app_slug != self.app_slug:
            raise WrongAudience(f"Token was issued for app {claims.app_slug!r}")

    def exchange(self, raw_token: str | None) -> ExchangeResult:
        now = self._clock()
        claims = decode_claims(
            raw_token,
            secret=self.settings.JWT_SECRET,
            expected_typ=SSO_TOKEN_TYPE,
            now=now,
            leeway=self.settings.CLOCK_SKEW_SECONDS,
        )
        self._check_audience(claims)

        ttl = self.settings.SESSION_TTL_SECONDS
        session_claims = claims.model_copy(update={"iat": now, "exp": now + ttl})
        session_token = encode_claims(
            session_claims,
            typ=APP_SESSION_TYPE,
            secret=self._session_secret,
        )
        logger.info(
            "SSO token exchanged user_id=%s app_slug=%s at=%s",
            claims.user_id,
            claims.app_slug,
            datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
        )
        return ExchangeResult(session_token=session_token, claims=session_claims, max_age=ttl)

    def verify_session(self, cookie_token: str | None) -> SSOClaims:
        claims = decode_claims(
            cookie_token,
            secret=self._session_secret,
            expected_typ=APP_SESSION_TYPE,
            now=self._clock(),
            leeway=self.settings.CLOCK_SKEW_SECONDS,
        )
        self._check_audience(claims)
        return claims
