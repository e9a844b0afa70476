"""FastAPI glue for downstream apps.

Usage inside an app::

    exchanger = SSOExchanger("chat", SSOSettings())
    app.include_router(build_sso_router(exchanger))
    require_session = SessionGuard(exchanger)

    @app.get("/inbox")
    def inbox(claims: SSOClaims = Depends(require_session)):
        ...
"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, HTTPException, Query, Request, Response
from fastapi.responses import RedirectResponse

from ssokit.config import SSOSettings
from ssokit.errors import SSOError
from ssokit.exchange import ExchangeResult, SSOExchanger
from ssokit.tokens import SSOClaims

logger = logging.getLogger(__name__)


def login_redirect_url(settings: SSOSettings, original_url: str) -> str:
    return f"{settings.PORTAL_LOGIN_URL}?{urlencode({'redirect': original_url})}"


def set_session_cookie(response: Response, result: ExchangeResult, settings: SSOSettings) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=result.session_token,
        max_age=result.max_age,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: SSOSettings) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


def build_sso_router(exchanger: SSOExchanger, *, home_path: str = "/") -> APIRouter:
    router = APIRouter()
    settings = exchanger.settings

    @router.get("/sso")
    def sso_callback(request: Request, token: str | None = Query(default=None)):
        try:
            result = exchanger.exchange(token)
        except SSOError as exc:
            logger.warning(
                "SSO exchange rejected app_slug=%s reason=%s",
                exchanger.app_slug,
                exc.kind,
            )
            # The token never goes back out in the redirect target.
            home_url = str(request.base_url).rstrip("/") + home_path
            return RedirectResponse(login_redirect_url(settings, home_url), status_code=302)

        response = RedirectResponse(home_path, status_code=302)
        set_session_cookie(response, result, settings)
        return response

    @router.get("/logout")
    def app_logout():
        response = RedirectResponse(settings.PORTAL_LOGIN_URL, status_code=302)
        clear_session_cookie(response, settings)
        return response

    return router


class SessionGuard:
    """Dependency every protected route of a downstream app runs."""

    def __init__(self, exchanger: SSOExchanger) -> None:
        self.exchanger = exchanger

    def __call__(self, request: Request) -> SSOClaims:
        settings = self.exchanger.settings
        try:
            return self.exchanger.verify_session(request.cookies.get(settings.SESSION_COOKIE_NAME))
        except SSOError:
            raise HTTPException(
                status_code=302,
                detail="Session required",
                headers={"Location": login_redirect_url(settings, str(request.url))},
            )
