import pytest
from fastapi import Response
from fastapi.security import HTTPAuthorizationCredentials

from portal.auth.credentials import CredentialStore
from portal.auth.deps import get_current_user, require_active_user
from portal.auth.router import (
    FORGOT_PASSWORD_MESSAGE,
    clear_password_reset_flag,
    forgot_password,
    login,
    recover,
    reset_password,
)
from portal.auth.schemas import ForgotPasswordRequest, LoginRequest, RecoverRequest, ResetPasswordRequest
from portal.core.errors import AccountLocked, BadRequest, Forbidden, Internal, TooManyAttempts, Unauthenticated

DEFAULT_PASSWORD = "Correct-Horse-9"


class RecordingMailer:
    def __init__(self):
        self.recovery = []
        self.welcome = []

    def send_recovery(self, to_email, link):
        self.recovery.append((to_email, link))

    def send_welcome(self, to_email, first_name):
        self.welcome.append((to_email, first_name))


async def _login(db, request_factory, email, password=DEFAULT_PASSWORD, redirect=None, ip="10.0.0.1"):
    response = Response()
    result = await login(
        LoginRequest(email=email, password=password, redirect=redirect),
        request_factory(ip),
        response,
        db=db,
    )
    return result, response


async def _current(db, request_factory, token):
    creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)
    return await get_current_user(request_factory(), creds=creds, x_client_id=None, db=db)


@pytest.mark.asyncio
async def test_login_sets_cookie_and_lands_on_portal_home(db, seed, request_factory):
    await seed.user("ana@acme.com")

    result, response = await _login(db, request_factory, "ana@acme.com")

    assert result.must_reset_password is False
    assert result.next == "/portal/apps"
    cookie = response.headers["set-cookie"]
    assert cookie.startswith("portal_session=")
    assert "HttpOnly" in cookie
    assert "samesite=lax" in cookie.lower()


@pytest.mark.asyncio
async def test_login_redirect_only_to_portal_paths_or_registered_apps(db, seed, request_factory):
    await seed.user("ana@acme.com")
    await seed.app("chat", "https://chat.example.com")

    ok, _ = await _login(db, request_factory, "ana@acme.com", redirect="https://chat.example.com/inbox")
    evil, _ = await _login(db, request_factory, "ana@acme.com", redirect="https://evil.example.net/")
    sneaky, _ = await _login(db, request_factory, "ana@acme.com", redirect="//evil.example.net/")

    assert ok.next == "https://chat.example.com/inbox"
    assert evil.next == "/portal/apps"
    assert sneaky.next == "/portal/apps"


@pytest.mark.asyncio
async def test_locked_account_is_rejected_even_with_correct_password(db, seed, request_factory):
    user = await seed.user("locked@acme.com")
    await CredentialStore(db).set_metadata(user.id, account_locked=True)

    with pytest.raises(AccountLocked):
        await _login(db, request_factory, "locked@acme.com")
    with pytest.raises(Unauthenticated):
        await _login(db, request_factory, "locked@acme.com", password="wrong-password")


@pytest.mark.asyncio
async def test_locking_after_login_blocks_the_existing_portal_session(db, seed, request_factory):
    user = await seed.user("ana@acme.com")
    result, _ = await _login(db, request_factory, "ana@acme.com")

    await CredentialStore(db).set_metadata(user.id, account_locked=True)

    with pytest.raises(AccountLocked):
        await _current(db, request_factory, result.access_token)


@pytest.mark.asyncio
async def test_repeated_failures_trip_the_login_guard(db, seed, request_factory):
    await seed.user("ana@acme.com")

    for _ in range(4):
        with pytest.raises(Unauthenticated):
            await _login(db, request_factory, "ana@acme.com", password="nope-nope")
    with pytest.raises(TooManyAttempts):
        await _login(db, request_factory, "ana@acme.com", password="nope-nope")
    # Even the right password waits out the lock from that address.
    with pytest.raises(TooManyAttempts):
        await _login(db, request_factory, "ana@acme.com")
    # Another address is unaffected.
    result, _ = await _login(db, request_factory, "ana@acme.com", ip="10.0.0.2")
    assert result.access_token


@pytest.mark.asyncio
async def test_invalid_bearer_token_is_unauthenticated(db, request_factory):
    with pytest.raises(Unauthenticated):
        await _current(db, request_factory, "not-a-jwt")


@pytest.mark.asyncio
async def test_must_reset_forces_reset_flow_until_password_changes(db, seed, request_factory):
    await seed.user("temp@acme.com", password="Temp-Pass-123", must_reset_password=True)

    first, _ = await _login(db, request_factory, "temp@acme.com", password="Temp-Pass-123", redirect="/portal/apps")
    assert first.must_reset_password is True
    assert first.next == "/reset-password"

    current = await _current(db, request_factory, first.access_token)
    with pytest.raises(Forbidden):
        await require_active_user(current)

    outcome = await reset_password(ResetPasswordRequest(new_password="Brand-New-Pass-1"), current=current, db=db)
    assert outcome.state == "normal"

    second, _ = await _login(db, request_factory, "temp@acme.com", password="Brand-New-Pass-1")
    assert second.must_reset_password is False
    assert second.next == "/portal/apps"


@pytest.mark.asyncio
async def test_failed_flag_clear_still_lets_user_in_and_next_login_corrects_it(
    db, seed, request_factory, monkeypatch
):
    user = await seed.user("temp@acme.com", password="Temp-Pass-123", must_reset_password=True)
    first, _ = await _login(db, request_factory, "temp@acme.com", password="Temp-Pass-123")
    current = await _current(db, request_factory, first.access_token)

    async def failing_set_metadata(self, user_id, **changes):
        raise Internal("metadata store unavailable")

    monkeypatch.setattr(CredentialStore, "set_metadata", failing_set_metadata)
    outcome = await reset_password(ResetPasswordRequest(new_password="Brand-New-Pass-1"), current=current, db=db)
    monkeypatch.undo()

    assert outcome.state == "reset_in_progress"
    assert user.must_reset_password is True
    # The password already changed, so the portal lets the user through.
    assert await require_active_user(current) is current

    second, _ = await _login(db, request_factory, "temp@acme.com", password="Brand-New-Pass-1")
    assert second.must_reset_password is False
    assert (await CredentialStore(db).get_metadata(user.id))["must_reset_password"] is False


@pytest.mark.asyncio
async def test_pending_reset_flag_cannot_be_cleared_without_new_password(db, seed, request_factory):
    user = await seed.user("temp@acme.com", password="Temp-Pass-123", must_reset_password=True)
    first, _ = await _login(db, request_factory, "temp@acme.com", password="Temp-Pass-123")
    current = await _current(db, request_factory, first.access_token)

    with pytest.raises(Forbidden):
        await clear_password_reset_flag(current=current, db=db)
    assert user.must_reset_password is True

    second, _ = await _login(db, request_factory, "temp@acme.com", password="Temp-Pass-123")
    assert second.must_reset_password is True
    assert second.next == "/reset-password"


@pytest.mark.asyncio
async def test_clear_flag_finishes_reset_after_password_changed(db, seed, request_factory, monkeypatch):
    user = await seed.user("temp@acme.com", password="Temp-Pass-123", must_reset_password=True)
    first, _ = await _login(db, request_factory, "temp@acme.com", password="Temp-Pass-123")
    current = await _current(db, request_factory, first.access_token)

    async def failing_set_metadata(self, user_id, **changes):
        raise Internal("metadata store unavailable")

    monkeypatch.setattr(CredentialStore, "set_metadata", failing_set_metadata)
    outcome = await reset_password(ResetPasswordRequest(new_password="Brand-New-Pass-1"), current=current, db=db)
    monkeypatch.undo()
    assert outcome.state == "reset_in_progress"

    result = await clear_password_reset_flag(current=current, db=db)
    assert result.ok is True
    assert (await CredentialStore(db).get_metadata(user.id))["must_reset_password"] is False


@pytest.mark.asyncio
async def test_failed_password_write_leaves_flag_set(db, seed, request_factory, monkeypatch):
    user = await seed.user("temp@acme.com", password="Temp-Pass-123", must_reset_password=True)
    first, _ = await _login(db, request_factory, "temp@acme.com", password="Temp-Pass-123")
    current = await _current(db, request_factory, first.access_token)
    cleared = []

    async def failing_set_password(self, user_id, password, *, temporary=False):
        raise Internal("credential store unavailable")

    async def recording_set_metadata(self, user_id, **changes):
        cleared.append(changes)

    monkeypatch.setattr(CredentialStore, "set_password", failing_set_password)
    monkeypatch.setattr(CredentialStore, "set_metadata", recording_set_metadata)

    with pytest.raises(Internal):
        await reset_password(ResetPasswordRequest(new_password="Brand-New-Pass-1"), current=current, db=db)
    assert cleared == []
    assert user.must_reset_password is True


@pytest.mark.asyncio
async def test_forgot_password_response_does_not_reveal_account_existence(db, seed):
    await seed.user("ana@acme.com")
    mailer = RecordingMailer()

    known = await forgot_password(ForgotPasswordRequest(email="ana@acme.com"), db=db, mailer=mailer)
    unknown = await forgot_password(ForgotPasswordRequest(email="ghost@acme.com"), db=db, mailer=mailer)

    assert known.model_dump() == unknown.model_dump() == {"ok": True, "message": FORGOT_PASSWORD_MESSAGE}
    assert [to for to, _ in mailer.recovery] == ["ana@acme.com"]


@pytest.mark.asyncio
async def test_recovery_link_sets_password_once(db, seed, request_factory):
    await seed.user("ana@acme.com", must_reset_password=True)
    mailer = RecordingMailer()
    await forgot_password(ForgotPasswordRequest(email="ana@acme.com"), db=db, mailer=mailer)
    _, link = mailer.recovery[0]
    assert link.startswith("http://localhost:3000/reset-password?token=")
    token = link.split("token=", 1)[1]

    await recover(RecoverRequest(token=token, new_password="Recovered-Pass-7"), db=db)
    result, _ = await _login(db, request_factory, "ana@acme.com", password="Recovered-Pass-7")
    assert result.must_reset_password is False

    with pytest.raises(BadRequest):
        await recover(RecoverRequest(token=token, new_password="Another-Pass-8"), db=db)
