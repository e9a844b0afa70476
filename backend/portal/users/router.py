from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portal.audit.service import AuditRepository
from portal.auth.deps import PortalUser, require_active_user
from portal.auth.rbac import tenant_admin
from portal.db.session import get_db
from portal.email.service import EmailService, get_email_service
from portal.users.schemas import (
    AddByEmailRequest,
    AddByEmailResponse,
    InviteRequest,
    InviteResponse,
    MembersListResponse,
    MemberOut,
    MemberUpdateRequest,
    OpsAuditEntryOut,
    OpsAuditListResponse,
)
from portal.users.service import UserAdmin

router = APIRouter()


def _admin(db: AsyncSession, current: PortalUser, mailer: EmailService) -> UserAdmin:
    return UserAdmin(db, current.actor, mailer)


@router.get("", response_model=MembersListResponse)
async def list_users(
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(tenant_admin),
    mailer: EmailService = Depends(get_email_service),
):
    members = await _admin(db, current, mailer).list_members()
    return MembersListResponse(client_id=current.client_id, members=members)


@router.get("/audit", response_model=OpsAuditListResponse)
async def list_user_audit(
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(tenant_admin),
):
    rows = await AuditRepository(db).list_for_client(current.client_id, limit=limit)
    return OpsAuditListResponse(
        client_id=current.client_id,
        items=[
            OpsAuditEntryOut(
                id=row.id,
                client_id=row.client_id,
                actor_user_id=row.actor_user_id,
                action_type=row.action_type,
                target_user_id=row.target_user_id,
                metadata_json=row.metadata_json or {},
                created_at=row.created_at,
            )
            for row in rows
        ],
    )


@router.post("/invite", response_model=InviteResponse)
async def invite_user(
    payload: InviteRequest,
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(tenant_admin),
    mailer: EmailService = Depends(get_email_service),
):
    user, created, granted = await _admin(db, current, mailer).invite(payload)
    return InviteResponse(user_id=user.id, created=created, granted=granted)


@router.post("/add-by-email", response_model=AddByEmailResponse)
async def add_user_by_email(
    payload: AddByEmailRequest,
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(tenant_admin),
    mailer: EmailService = Depends(get_email_service),
):
    linked, created = await _admin(db, current, mailer).add_by_email(payload)
    if not linked:
        return AddByEmailResponse(created=created, note="Already linked")
    return AddByEmailResponse(created=created)


@router.put("/{membership_id}", response_model=MemberOut)
async def update_user(
    membership_id: str,
    payload: MemberUpdateRequest,
    db: AsyncSession = Depends(get_db),
    # self-service name edits are allowed; the gate decides the rest
    current: PortalUser = Depends(require_active_user),
    mailer: EmailService = Depends(get_email_service),
):
    return await _admin(db, current, mailer).update_member(membership_id, payload)


@router.delete("/{membership_id}")
async def remove_user(
    membership_id: str,
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(tenant_admin),
    mailer: EmailService = Depends(get_email_service),
):
    user_id = await _admin(db, current, mailer).remove_member(membership_id)
    return {"deleted": True, "user_id": user_id}


@router.post("/{membership_id}/send-reset")
async def send_user_reset(
    membership_id: str,
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(tenant_admin),
    mailer: EmailService = Depends(get_email_service),
):
    await _admin(db, current, mailer).send_reset(membership_id)
    return {"ok": True}
