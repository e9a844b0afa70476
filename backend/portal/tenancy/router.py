import secrets
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal.audit.service import write_ops_audit_log
from portal.auth.deps import PortalUser, require_active_user
from portal.auth.rbac import hyper_user, tenant_admin
from portal.core.errors import BadRequest, Conflict, NotFound
from portal.db.session import get_db
from portal.tenancy.models import App, Client, UserApp
from portal.tenancy.repository import AppRepository, ClientRepository, GrantRepository, MembershipRepository
from portal.tenancy.schemas import (
    AppCreate,
    AppOut,
    ClientCreate,
    ClientOut,
    GrantCreate,
    GrantOut,
    GrantsListResponse,
)

clients_router = APIRouter()
apps_router = APIRouter()
grants_router = APIRouter()


def _slugify(value: str, *, fallback: str) -> str:
    raw = "".join(ch.lower() if ch.isalnum() else "_" for ch in value.strip())
    raw = "_".join(part for part in raw.split("_") if part)
    return raw[:40] if raw else fallback


def _to_grant_out(grant: UserApp, app: App) -> GrantOut:
    return GrantOut(
        id=grant.id,
        user_id=grant.user_id,
        app_id=app.id,
        app_slug=app.slug,
        client_id=grant.client_id,
        role=grant.role,
        created_at=grant.created_at,
    )


# --- Clients (super-admin) ---
@clients_router.get("", response_model=list[ClientOut])
async def list_clients(
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(hyper_user),
):
    return await ClientRepository(db).list_all()


@clients_router.post("", response_model=ClientOut, status_code=201)
async def create_client(
    payload: ClientCreate,
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(hyper_user),
):
    repo = ClientRepository(db)
    client_id = payload.id or f"c_{_slugify(payload.name, fallback='client')}"
    if await repo.get(client_id):
        raise Conflict("Client already exists")

    client = await repo.add(Client(id=client_id, name=payload.name, created_at=datetime.utcnow()))
    await write_ops_audit_log(
        db,
        client_id=client.id,
        actor_user_id=current.id,
        action_type="client.create",
        metadata={"name": client.name},
    )
    return client


@clients_router.get("/{client_id}", response_model=ClientOut)
async def get_client(
    client_id: str,
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(require_active_user),
):
    if not current.user.is_hyper and current.client_id != client_id:
        raise NotFound("Client not found")
    client = await ClientRepository(db).get(client_id)
    if not client:
        raise NotFound("Client not found")
    return client


# --- Apps (global catalogue) ---
@apps_router.get("", response_model=list[AppOut])
async def list_apps(
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(require_active_user),
):
    return await AppRepository(db).list_all()


@apps_router.post("", response_model=AppOut, status_code=201)
async def create_app(
    payload: AppCreate,
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(hyper_user),
):
    repo = AppRepository(db)
    if await repo.get_by_slug(payload.slug):
        raise Conflict("App slug already exists")

    app = await repo.add(
        App(id=f"app_{secrets.token_hex(8)}", slug=payload.slug, name=payload.name, domain=payload.domain)
    )
    await write_ops_audit_log(
        db,
        client_id=None,
        actor_user_id=current.id,
        action_type="app.create",
        metadata={"slug": app.slug, "domain": app.domain},
    )
    return app


# --- Grants (tenant owner/admin) ---
@grants_router.get("", response_model=GrantsListResponse)
async def list_grants(
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(tenant_admin),
):
    rows = await GrantRepository(db).list_in_scope(current.client_id)
    return GrantsListResponse(
        client_id=current.client_id,
        grants=[_to_grant_out(grant, app) for grant, app in rows],
    )


@grants_router.post("", response_model=GrantOut, status_code=201)
async def create_grant(
    payload: GrantCreate,
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(tenant_admin),
):
    app = await AppRepository(db).get_by_slug(payload.app_slug)
    if not app:
        raise NotFound("App not found")
    if not await MembershipRepository(db).get(payload.user_id, current.client_id):
        raise BadRequest("User is not a member of this client")

    grant = UserApp(
        id=f"ua_{secrets.token_hex(10)}",
        user_id=payload.user_id,
        app_id=app.id,
        client_id=current.client_id,
        role=payload.role,
        created_at=datetime.utcnow(),
    )
    await GrantRepository(db).replace([grant])
    await write_ops_audit_log(
        db,
        client_id=current.client_id,
        actor_user_id=current.id,
        action_type="grant.create",
        target_user_id=payload.user_id,
        metadata={"app_slug": app.slug, "role": payload.role},
    )
    return _to_grant_out(grant, app)


@grants_router.delete("/{grant_id}")
async def delete_grant(
    grant_id: str,
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(tenant_admin),
):
    repo = GrantRepository(db)
    grant = await repo.get_in_scope(grant_id, current.client_id)
    if not grant:
        raise NotFound("Grant not found for client")

    target_user_id = grant.user_id
    await repo.delete(grant)
    await write_ops_audit_log(
        db,
        client_id=current.client_id,
        actor_user_id=current.id,
        action_type="grant.delete",
        target_user_id=target_user_id,
        metadata={"grant_id": grant_id},
    )
    return {"deleted": True, "grant_id": grant_id}
