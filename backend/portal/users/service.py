"""User management inside one client.

Every mutation is validated against the Authorization Gate before the first
write and leaves an ``ops_audit_logs`` row behind.
"""

import logging
import secrets
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from portal.audit.service import write_ops_audit_log
from portal.auth.credentials import CredentialStore
from portal.auth.models import User
from portal.auth.security import generate_password
from portal.authz.gate import (
    Actor,
    check_account_control,
    check_member_update,
    check_role_assignment,
    require_tenant_admin,
)
from portal.core.errors import BadRequest, Conflict, Forbidden, NotFound
from portal.email.service import EmailService, send_best_effort
from portal.tenancy.models import ClientUser, UserApp
from portal.tenancy.repository import AppRepository, GrantRepository, MembershipRepository
from portal.users.schemas import AddByEmailRequest, InviteRequest, MemberOut, MemberUpdateRequest

logger = logging.getLogger(__name__)

# Fields stored on the user account rather than the membership.
ACCOUNT_FIELDS = ("first_name", "last_name", "email", "account_locked")


def to_member_out(membership: ClientUser, user: User | None) -> MemberOut:
    return MemberOut(
        id=membership.id,
        user_id=membership.user_id,
        email=user.email if user else None,
        first_name=user.first_name if user else None,
        last_name=user.last_name if user else None,
        role=membership.role,
        account_locked=bool(user and user.account_locked),
        must_reset_password=bool(user and user.must_reset_password),
        created_at=membership.created_at,
    )


class UserAdmin:
    def __init__(self, db: AsyncSession, actor: Actor, mailer: EmailService) -> None:
        self.db = db
        self.actor = actor
        self.mailer = mailer
        self.store = CredentialStore(db)
        self.memberships = MembershipRepository(db)
        self.grants = GrantRepository(db)
        self.apps = AppRepository(db)

    @property
    def client_id(self) -> str:
        if not self.actor.client_id:
            raise BadRequest("Client context required")
        return self.actor.client_id

    async def _audit(self, action_type: str, target_user_id: str | None = None, **metadata) -> None:
        await write_ops_audit_log(
            self.db,
            client_id=self.client_id,
            actor_user_id=self.actor.user_id,
            action_type=action_type,
            target_user_id=target_user_id,
            metadata=metadata,
        )

    async def _link(self, user_id: str, role: str) -> bool:
        """Create the membership; ``False`` when the user is already linked."""
        if await self.memberships.get(user_id, self.client_id):
            return False
        try:
            await self.memberships.add(
                ClientUser(
                    id=f"cu_{secrets.token_hex(10)}",
                    client_id=self.client_id,
                    user_id=user_id,
                    role=role,
                    created_at=datetime.utcnow(),
                )
            )
        except Conflict:
            return False
        return True

    async def _member(self, membership_id: str) -> ClientUser:
        membership = await self.memberships.get_in_client(membership_id, self.client_id)
        if not membership:
            raise NotFound("User not found")
        return membership

    async def _check_account_control(self, user_id: str) -> None:
        user = await self.store.users.get(user_id)
        if not user:
            raise NotFound("User not found")
        memberships = await self.memberships.list_for_user(user_id)
        check_account_control(
            self.actor,
            target_user_id=user_id,
            target_is_hyper=user.is_hyper,
            other_client_ids=[m.client_id for m in memberships if m.client_id != self.client_id],
        )

    async def list_members(self) -> list[MemberOut]:
        rows = await self.memberships.list_for_client(self.client_id)
        users = {u.id: u for u in await self.store.users.list_by_ids([m.user_id for m in rows])}
        return [to_member_out(m, users.get(m.user_id)) for m in rows]

    async def invite(self, payload: InviteRequest) -> tuple[User, bool, list[str]]:
        require_tenant_admin(self.actor)
        slugs = sorted(set(payload.app_slugs))
        apps = await self.apps.list_by_slugs(slugs)
        missing = set(slugs) - {a.slug for a in apps}
        if missing:
            raise BadRequest(f"Unknown apps: {', '.join(sorted(missing))}")

        user = await self.store.find_by_email(str(payload.email))
        created = user is None
        if created:
            user = await self.store.create_user(email=str(payload.email))

        await self._link(user.id, "agent")
        now = datetime.utcnow()
        await self.grants.replace(
            [
                UserApp(
                    id=f"ua_{secrets.token_hex(10)}",
                    user_id=user.id,
                    app_id=app.id,
                    client_id=self.client_id,
                    role=payload.role,
                    created_at=now,
                )
                for app in apps
            ]
        )

        if created:
            issued = await self.store.issue_recovery_link(user.email)
            if issued:
                await send_best_effort(self.mailer.send_recovery, user.email, issued[1])

        granted = [a.slug for a in apps]
        await self._audit("user.invite", user.id, created=created, apps=granted, app_role=payload.role)
        return user, created, granted

    async def add_by_email(self, payload: AddByEmailRequest) -> tuple[bool, bool]:
        """Return ``(linked, created)``."""
        require_tenant_admin(self.actor)
        check_role_assignment(self.actor, payload.role)

        user = await self.store.find_by_email(str(payload.email))
        created = user is None
        if created:
            user = await self.store.create_user(
                email=str(payload.email),
                password=payload.password or generate_password(),
                first_name=payload.first_name,
                last_name=payload.last_name,
                must_reset_password=payload.password is not None,
            )

        linked = await self._link(user.id, payload.role)
        if not linked:
            return False, created

        if created:
            await send_best_effort(self.mailer.send_welcome, user.email, payload.first_name)

        await self._audit("user.add", user.id, created=created, role=payload.role)
        return True, created

    async def update_member(self, membership_id: str, payload: MemberUpdateRequest) -> MemberOut:
        membership = await self._member(membership_id)
        check_member_update(
            self.actor,
            target_user_id=membership.user_id,
            target_role=membership.role,
            new_role=payload.role,
            account_locked=payload.account_locked,
            temporary_password=payload.password is not None,
        )

        changes = payload.model_dump(exclude_none=True, exclude={"password"})
        if payload.password is not None or set(changes) & set(ACCOUNT_FIELDS):
            await self._check_account_control(membership.user_id)

        metadata = {k: v for k, v in changes.items() if k in ("first_name", "last_name", "account_locked")}
        if metadata:
            await self.store.set_metadata(membership.user_id, **metadata)
        if payload.email is not None:
            await self.store.set_email(membership.user_id, str(payload.email))
        if payload.password is not None:
            await self.store.set_password(membership.user_id, payload.password, temporary=True)
        if payload.role is not None:
            membership.role = payload.role
            await self.memberships.save(membership)

        if payload.password is not None:
            changes["temporary_password"] = True
        await self._audit("user.update", membership.user_id, fields=sorted(changes))
        return to_member_out(membership, await self.store.users.get(membership.user_id))

    async def remove_member(self, membership_id: str) -> str:
        require_tenant_admin(self.actor)
        membership = await self._member(membership_id)
        if membership.user_id == self.actor.user_id:
            raise Forbidden("You cannot remove yourself")
        check_member_update(self.actor, target_user_id=membership.user_id, target_role=membership.role)

        user_id = membership.user_id
        await self.memberships.delete(membership)
        removed = await self.grants.delete_for_user(user_id, self.client_id)
        await self._audit("user.remove", user_id, grants_removed=removed)
        return user_id

    async def send_reset(self, membership_id: str) -> None:
        require_tenant_admin(self.actor)
        membership = await self._member(membership_id)
        user = await self.store.users.get(membership.user_id)
        if not user:
            raise NotFound("User email not found")

        issued = await self.store.issue_recovery_link(user.email)
        if issued:
            await send_best_effort(self.mailer.send_recovery, user.email, issued[1])
        await self._audit("user.send_reset", user.id)
        logger.info("Recovery link issued by admin user_id=%s", user.id)
