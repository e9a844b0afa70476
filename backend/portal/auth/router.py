import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from portal.auth.credentials import CredentialStore
from portal.auth.deps import PortalUser, get_current_user
from portal.auth.login_guard import login_guard
from portal.auth.password_reset import ResetState, complete_password_reset, reset_required, reset_state
from portal.auth.redirects import normalize_origins, sanitize_redirect
from portal.auth.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MembershipOut,
    OkResponse,
    RecoverRequest,
    ResetPasswordRequest,
    ResetPasswordResponse,
)
from portal.auth.security import JWT_ACCESS_EXP_MINUTES, create_access_token
from portal.core.config import settings
from portal.core.errors import Forbidden, PortalError, TooManyAttempts, Unauthenticated
from portal.db.session import get_db
from portal.email.service import EmailService, get_email_service, send_best_effort
from portal.tenancy.repository import AppRepository, MembershipRepository

logger = logging.getLogger(__name__)

router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "If the email exists, a reset link has been sent."


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.PORTAL_SESSION_COOKIE,
        value=token,
        max_age=JWT_ACCESS_EXP_MINUTES * 60,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    email = str(payload.email).lower()
    client_ip = request.client.host if request.client else "unknown"
    login_key = f"{email}:{client_ip}"
    locked_until = login_guard.is_locked(login_key)
    if locked_until:
        raise TooManyAttempts(f"Too many failed attempts. Retry after {locked_until.isoformat()}")

    store = CredentialStore(db)
    try:
        identity = await store.verify_credentials(email, payload.password)
    except Unauthenticated:
        new_lock = login_guard.register_failure(login_key)
        if new_lock:
            raise TooManyAttempts(f"Too many failed attempts. Retry after {new_lock.isoformat()}")
        raise

    login_guard.clear(login_key)
    await store.correct_stale_reset_flag(identity.user_id)
    user = await store.users.get(identity.user_id)
    must_reset = reset_required(user)

    access_token = create_access_token({"sub": identity.user_id, "email": identity.email})
    _set_session_cookie(response, access_token)

    if must_reset:
        next_url = settings.RESET_PASSWORD_PATH
    else:
        apps = await AppRepository(db).list_all()
        next_url = sanitize_redirect(
            payload.redirect,
            allowed_origins=normalize_origins([a.domain for a in apps]),
            default=settings.PORTAL_HOME_PATH,
        )

    logger.info("Portal login user_id=%s must_reset=%s", identity.user_id, must_reset)
    return LoginResponse(access_token=access_token, must_reset_password=must_reset, next=next_url)


@router.post("/logout", response_model=OkResponse)
async def logout(response: Response):
    response.delete_cookie(
        key=settings.PORTAL_SESSION_COOKIE,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )
    return OkResponse()


@router.get("/me", response_model=MeResponse)
async def me(
    current: PortalUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    memberships = await MembershipRepository(db).list_for_user(current.id)
    user = current.user
    return MeResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        is_hyper=user.is_hyper,
        client_id=current.client_id,
        role=current.role,
        must_reset_password=reset_required(user),
        memberships=[MembershipOut(client_id=m.client_id, role=m.role) for m in memberships],
    )


@router.post("/reset-password", response_model=ResetPasswordResponse)
async def reset_password(
    payload: ResetPasswordRequest,
    current: PortalUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    state = await complete_password_reset(CredentialStore(db), current.id, payload.new_password)
    return ResetPasswordResponse(state=state.value)


@router.post("/clear-password-reset-flag", response_model=OkResponse)
async def clear_password_reset_flag(
    current: PortalUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Finish a reset whose flag clear failed; a pending reset cannot be skipped."""
    state = reset_state(current.user)
    if state is ResetState.MUST_RESET:
        raise Forbidden("Set a new password before continuing")
    if state is ResetState.RESET_IN_PROGRESS:
        await CredentialStore(db).set_metadata(current.id, must_reset_password=False)
        logger.info("Password reset flag cleared user_id=%s", current.id)
    return OkResponse()


@router.post("/forgot-password", response_model=OkResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    mailer: EmailService = Depends(get_email_service),
):
    try:
        issued = await CredentialStore(db).issue_recovery_link(str(payload.email))
    except PortalError:
        # The response must not reveal whether the lookup happened at all.
        logger.exception("Recovery link issuance failed")
        issued = None

    if issued:
        user, link = issued
        await send_best_effort(mailer.send_recovery, user.email, link)

    return OkResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/recover", response_model=OkResponse)
async def recover(payload: RecoverRequest, db: AsyncSession = Depends(get_db)):
    identity = await CredentialStore(db).consume_recovery_link(payload.token, payload.new_password)
    logger.info("Recovery link consumed user_id=%s", identity.user_id)
    return OkResponse()
