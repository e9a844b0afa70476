"""Authorization Gate.

Predicates read the Tenancy Directory and never write. Failures of the
directory itself propagate as ``Internal``; they are never read as a denial.
"""

from dataclasses import dataclass
from typing import Literal

from portal.core.errors import BadRequest, Forbidden
from portal.tenancy.directory import TenancyDirectory

TENANT_ROLES = ("owner", "admin", "agent")
ADMIN_ROLES = frozenset({"owner", "admin"})
ROLE_ORDER = {"agent": 1, "admin": 2, "owner": 3}

# Roles carried on app grants and stamped into SSO tokens.
AppRole = Literal["admin", "agent", "user", "viewer"]


@dataclass(frozen=True)
class Actor:
    user_id: str
    client_id: str | None
    role: str | None
    is_hyper: bool = False


def is_tenant_admin(actor: Actor) -> bool:
    return actor.is_hyper or actor.role in ADMIN_ROLES


def _rank(actor: Actor) -> int:
    if actor.is_hyper:
        return max(ROLE_ORDER.values())
    return ROLE_ORDER.get(actor.role or "", 0)


class AuthorizationGate:
    def __init__(self, directory: TenancyDirectory) -> None:
        self.directory = directory

    async def role_in_tenant(self, user_id: str, tenant_id: str) -> str | None:
        return await self.directory.role_in_tenant(user_id, tenant_id)

    async def has_app_access(self, user_id: str, app_slug: str, tenant_id: str | None = None) -> bool:
        grant = await self.directory.grant_for(user_id, app_slug, tenant_id)
        return grant is not None

    async def role_for_app(self, user_id: str, app_slug: str, tenant_id: str | None = None) -> str | None:
        return await self.directory.role_for_app(user_id, app_slug, tenant_id)


def require_hyper(actor: Actor) -> None:
    if not actor.is_hyper:
        raise Forbidden("Super-admin access required")


def require_tenant_admin(actor: Actor) -> str:
    """Return the client the admin acts on."""
    if not is_tenant_admin(actor):
        raise Forbidden("Only owners and admins can manage users")
    if not actor.client_id:
        raise BadRequest("Client context required")
    return actor.client_id


def check_role_assignment(actor: Actor, new_role: str) -> None:
    if new_role not in TENANT_ROLES:
        raise BadRequest("Invalid role")
    if ROLE_ORDER[new_role] > _rank(actor):
        raise Forbidden("Cannot grant a role above your own")


def check_member_update(
    actor: Actor,
    *,
    target_user_id: str,
    target_role: str,
    new_role: str | None = None,
    account_locked: bool | None = None,
    temporary_password: bool = False,
) -> None:
    """Validate a user-management mutation before anything is written."""
    if target_user_id == actor.user_id:
        if new_role is not None:
            raise Forbidden("You cannot change your own role")
        if account_locked is not None:
            raise Forbidden("You cannot lock or unlock your own account")
        if temporary_password:
            raise BadRequest("Use the reset-password flow to change your own password")
        return

    if not is_tenant_admin(actor):
        if account_locked is not None:
            raise Forbidden("Only owners and admins can lock/unlock accounts")
        raise Forbidden("Only owners and admins can manage users")
    if ROLE_ORDER.get(target_role, 0) > _rank(actor):
        raise Forbidden("Cannot modify a user with a higher role")
    if new_role is not None:
        check_role_assignment(actor, new_role)


def check_account_control(
    actor: Actor,
    *,
    target_user_id: str,
    target_is_hyper: bool,
    other_client_ids: list[str],
) -> None:
    """Gate writes to the account row itself (names, email, password, lock).

    The account is shared by every client the user belongs to, so a tenant
    admin may only change it when the user belongs to no other client.
    """
    if target_user_id == actor.user_id or actor.is_hyper:
        return
    if target_is_hyper:
        raise Forbidden("Cannot modify a super-admin account")
    if other_client_ids:
        raise Forbidden("User account is shared with another client")
