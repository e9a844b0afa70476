from dataclasses import dataclass

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from portal.auth.models import User
from portal.auth.password_reset import reset_required
from portal.auth.repository import UserRepository
from portal.auth.security import JWTError, decode_token
from portal.authz.gate import Actor
from portal.core.config import settings
from portal.core.errors import AccountLocked, Forbidden, Unauthenticated
from portal.db.session import get_db
from portal.tenancy.directory import TenancyDirectory

bearer = HTTPBearer(auto_error=False)


@dataclass
class PortalUser:
    user: User
    client_id: str | None
    role: str | None

    @property
    def id(self) -> str:
        return self.user.id

    @property
    def actor(self) -> Actor:
        return Actor(
            user_id=self.user.id,
            client_id=self.client_id,
            role=self.role,
            is_hyper=self.user.is_hyper,
        )


async def get_current_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    x_client_id: str | None = Header(default=None, alias="X-Client-Id"),
    db: AsyncSession = Depends(get_db),
) -> PortalUser:
    raw = creds.credentials if creds else request.cookies.get(settings.PORTAL_SESSION_COOKIE)
    if not raw:
        raise Unauthenticated("Missing session")

    try:
        payload = decode_token(raw)
    except JWTError:
        raise Unauthenticated("Invalid session")

    if payload.get("typ") != "access":
        raise Unauthenticated("Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise Unauthenticated("Invalid session payload")

    user = await UserRepository(db).get(user_id)
    if not user:
        raise Unauthenticated("User not found")
    if user.account_locked:
        raise AccountLocked()

    directory = TenancyDirectory(db)
    if x_client_id:
        membership = await directory.membership(user.id, x_client_id)
        if not membership and not user.is_hyper:
            raise Forbidden("Not a member of this client")
        client_id = x_client_id
    else:
        membership = await directory.primary_membership(user.id)
        client_id = membership.client_id if membership else None

    return PortalUser(user=user, client_id=client_id, role=membership.role if membership else None)


async def require_active_user(current: PortalUser = Depends(get_current_user)) -> PortalUser:
    if reset_required(current.user):
        raise Forbidden("Password reset required")
    return current
