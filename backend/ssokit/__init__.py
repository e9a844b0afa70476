from ssokit.clock import MonotonicClock
from ssokit.config import SSOSettings
from ssokit.errors import Expired, Malformed, SSOError, Unauthenticated, WrongAudience
from ssokit.exchange import ExchangeResult, SSOExchanger
from ssokit.routes import SessionGuard, build_sso_router
from ssokit.tokens import JWT_ALG, SSOClaims, issue_sso_token

__all__ = [
    "ExchangeResult",
    "Expired",
    "JWT_ALG",
    "Malformed",
    "MonotonicClock",
    "SSOClaims",
    "SSOError",
    "SSOExchanger",
    "SSOSettings",
    "SessionGuard",
    "Unauthenticated",
    "WrongAudience",
    "build_sso_router",
    "issue_sso_token",
]
