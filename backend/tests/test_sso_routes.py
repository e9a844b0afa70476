from urllib.parse import parse_qs, urlsplit

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from ssokit import SSOClaims, SSOExchanger, SSOSettings, SessionGuard, build_sso_router, issue_sso_token

SECRET = "shared-secret-for-tests-0123456789abcdef"
T0 = 1_760_000_000
LOGIN_URL = "https://portal.example.com/login"


def _client(now: int = T0) -> TestClient:
    settings = SSOSettings(JWT_SECRET=SECRET, COOKIE_SECURE=False, PORTAL_LOGIN_URL=LOGIN_URL)
    exchanger = SSOExchanger("chat", settings, clock=lambda: now)
    require_session = SessionGuard(exchanger)

    app = FastAPI()
    app.include_router(build_sso_router(exchanger))

    @app.get("/")
    def home(claims: SSOClaims = Depends(require_session)):
        return {"user_id": claims.user_id, "role": claims.role, "client_id": claims.client_id}

    @app.get("/inbox")
    def inbox(claims: SSOClaims = Depends(require_session)):
        return {"ok": True}

    return TestClient(app)


def _token(app_slug: str = "chat", now: int = T0) -> str:
    return issue_sso_token("U1", app_slug, "agent", "T1", secret=SECRET, ttl_seconds=300, now=now)


def _redirect_param(location: str) -> str:
    parts = urlsplit(location)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == LOGIN_URL
    return parse_qs(parts.query)["redirect"][0]


def test_sso_callback_sets_session_cookie_and_redirects_home():
    client = _client()
    resp = client.get("/sso", params={"token": _token()}, follow_redirects=False)

    assert resp.status_code == 302
    assert resp.headers["location"] == "/"
    cookie = resp.headers["set-cookie"]
    assert cookie.startswith("app_session=")
    assert "HttpOnly" in cookie
    assert "samesite=lax" in cookie.lower()
    assert "Max-Age=604800" in cookie

    home = client.get("/")
    assert home.status_code == 200
    assert home.json() == {"user_id": "U1", "role": "agent", "client_id": "T1"}


def test_sso_callback_failure_redirects_to_login_without_leaking_token():
    client = _client()
    token = _token(app_slug="dc")
    resp = client.get("/sso", params={"token": token}, follow_redirects=False)

    assert resp.status_code == 302
    assert token not in resp.headers["location"]
    assert _redirect_param(resp.headers["location"]) == "http://testserver/"
    assert "set-cookie" not in resp.headers


def test_expired_sso_token_redirects_to_login():
    client = _client(now=T0 + 3600)
    resp = client.get("/sso", params={"token": _token()}, follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"].startswith(LOGIN_URL)


def test_protected_route_without_session_redirects_with_original_url():
    client = _client()
    resp = client.get("/inbox", params={"page": "2"}, follow_redirects=False)

    assert resp.status_code == 302
    assert _redirect_param(resp.headers["location"]) == "http://testserver/inbox?page=2"


def test_tampered_session_cookie_redirects_to_login():
    client = _client()
    client.get("/sso", params={"token": _token()}, follow_redirects=False)
    tampered = client.cookies.get("app_session") + "x"
    client.cookies.clear()
    client.cookies.set("app_session", tampered)

    resp = client.get("/", follow_redirects=False)
    assert resp.status_code == 302


def test_logout_clears_session_cookie():
    client = _client()
    client.get("/sso", params={"token": _token()}, follow_redirects=False)

    resp = client.get("/logout", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == LOGIN_URL
    assert 'app_session=""' in resp.headers["set-cookie"] or "Max-Age=0" in resp.headers["set-cookie"]

    assert client.get("/", follow_redirects=False).status_code == 302
