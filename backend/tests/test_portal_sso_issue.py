from urllib.parse import parse_qs, urlsplit

import pytest
from jose import jwt

from portal.core.config import settings
from portal.core.errors import BadRequest, Forbidden, Internal, NotFound
from portal.sso.issuer import ensure_sso_configured, get_issuer
from portal.sso.router import issue_sso, my_apps
from ssokit import SSOExchanger, SSOSettings
from ssokit.tokens import APP_SESSION_TYPE, decode_claims


class IssuerMustNotRun:
    def issue(self, *args, **kwargs):
        raise AssertionError("issuer contacted without a grant")


@pytest.mark.asyncio
async def test_granted_user_gets_token_the_app_can_exchange(db, seed):
    await seed.client("T1")
    chat = await seed.app("chat", "https://chat.example.com/")
    u1 = await seed.user("u1@acme.com")
    await seed.member(u1, "T1", role="agent")
    await seed.grant(u1, chat, "T1", role="agent")
    current = await seed.portal_user(u1, "T1")

    result = await issue_sso(app="chat", db=db, current=current, issuer=get_issuer())

    payload = jwt.decode(result.token, settings.SSO_JWT_SECRET, algorithms=["HS256"], options={"verify_exp": False})
    assert payload["exp"] - payload["iat"] == 300
    assert payload["typ"] == "sso"

    parts = urlsplit(result.redirect_url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://chat.example.com/sso"
    assert parse_qs(parts.query)["token"] == [result.token]

    app_settings = SSOSettings()
    exchanged = SSOExchanger("chat", app_settings).exchange(result.token)
    session = decode_claims(
        exchanged.session_token,
        secret=app_settings.JWT_SECRET,
        expected_typ=APP_SESSION_TYPE,
        now=exchanged.claims.iat,
        leeway=0,
    )
    assert (session.user_id, session.role, session.app_slug, session.client_id) == (u1.id, "agent", "chat", "T1")


@pytest.mark.asyncio
async def test_user_without_grant_is_forbidden_and_issuer_never_runs(db, seed):
    await seed.client("T1")
    await seed.app("dc")
    u2 = await seed.user("u2@acme.com")
    await seed.member(u2, "T1", role="agent")
    current = await seed.portal_user(u2, "T1")

    with pytest.raises(Forbidden) as excinfo:
        await issue_sso(app="dc", db=db, current=current, issuer=IssuerMustNotRun())
    assert excinfo.value.status_code == 403


@pytest.mark.asyncio
async def test_grant_in_another_tenant_does_not_open_the_app(db, seed):
    await seed.client("T1")
    await seed.client("T2")
    chat = await seed.app("chat")
    user = await seed.user("both@acme.com")
    await seed.member(user, "T1")
    await seed.member(user, "T2")
    await seed.grant(user, chat, "T2", role="agent")

    with pytest.raises(Forbidden):
        await issue_sso(app="chat", db=db, current=await seed.portal_user(user, "T1"), issuer=IssuerMustNotRun())


@pytest.mark.asyncio
async def test_unknown_app_is_not_found(db, seed):
    user = await seed.user("u@acme.com")
    with pytest.raises(NotFound):
        await issue_sso(app="ghost", db=db, current=await seed.portal_user(user, None), issuer=IssuerMustNotRun())


@pytest.mark.asyncio
async def test_missing_app_slug_is_bad_request(db, seed):
    user = await seed.user("u@acme.com")
    with pytest.raises(BadRequest):
        await issue_sso(app=None, db=db, current=await seed.portal_user(user, None), issuer=IssuerMustNotRun())


def test_issuer_requires_configured_secret(monkeypatch):
    monkeypatch.setattr(settings, "SSO_JWT_SECRET", None)
    with pytest.raises(Internal):
        get_issuer()
    with pytest.raises(RuntimeError):
        ensure_sso_configured()


def test_startup_rejects_session_shorter_than_sso_token(monkeypatch):
    monkeypatch.setattr(settings, "APP_SESSION_TTL_SECONDS", 60)
    with pytest.raises(RuntimeError):
        ensure_sso_configured()


@pytest.mark.asyncio
async def test_portal_apps_lists_only_grants_in_current_tenant(db, seed):
    await seed.client("T1")
    chat = await seed.app("chat")
    dc = await seed.app("dc")
    user = await seed.user("u@acme.com")
    await seed.member(user, "T1")
    await seed.grant(user, chat, "T1", role="agent")
    await seed.grant(user, dc, "T2", role="agent")

    result = await my_apps(db=db, current=await seed.portal_user(user, "T1"))

    assert result.client_id == "T1"
    assert [(a.slug, a.role) for a in result.apps] == [("chat", "agent")]
