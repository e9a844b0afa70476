from typing import Callable

from portal.core.config import settings
from portal.core.errors import Internal
from ssokit.clock import MonotonicClock
from ssokit.tokens import issue_sso_token

_clock = MonotonicClock()


class SSOIssuer:
    """Mints short-lived SSO tokens.

    Authorization is the caller's job: by the time ``issue`` runs, the gate
    has already confirmed the grant.
    """

    def __init__(self, secret: str, ttl_seconds: int, clock: Callable[[], int] = _clock) -> None:
        self._secret = secret
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(self, user_id: str, app_slug: str, role: str, tenant_id: str | None = None) -> str:
        return issue_sso_token(
            user_id,
            app_slug,
            role,
            tenant_id,
            secret=self._secret,
            ttl_seconds=self.ttl_seconds,
            now=self._clock(),
        )


def ensure_sso_configured() -> None:
    if not settings.SSO_JWT_SECRET:
        raise RuntimeError("SSO_JWT_SECRET is not set")
    if settings.APP_SESSION_TTL_SECONDS <= settings.SSO_TOKEN_TTL_SECONDS:
        raise RuntimeError("APP_SESSION_TTL_SECONDS must exceed SSO_TOKEN_TTL_SECONDS")


def get_issuer() -> SSOIssuer:
    if not settings.SSO_JWT_SECRET:
        raise Internal("SSO is not configured")
    return SSOIssuer(settings.SSO_JWT_SECRET, settings.SSO_TOKEN_TTL_SECONDS)
