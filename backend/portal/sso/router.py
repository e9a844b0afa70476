from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portal.auth.deps import PortalUser, require_active_user
from portal.authz.gate import AuthorizationGate
from portal.core.errors import BadRequest, Forbidden, NotFound
from portal.db.session import get_db
from portal.sso.issuer import SSOIssuer, get_issuer
from portal.sso.schemas import PortalAppOut, PortalAppsResponse, SSOIssueResponse
from portal.tenancy.directory import TenancyDirectory

router = APIRouter()
portal_router = APIRouter()


@router.post("/issue", response_model=SSOIssueResponse)
async def issue_sso(
    app: str | None = Query(default=None, max_length=64),
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(require_active_user),
    issuer: SSOIssuer = Depends(get_issuer),
):
    if not app:
        raise BadRequest("App slug is required")

    directory = TenancyDirectory(db)
    target = await directory.resolve_app(app)
    if not target:
        raise NotFound("App not found")

    gate = AuthorizationGate(directory)
    role = await gate.role_for_app(current.id, app, current.client_id)
    if role is None:
        raise Forbidden("Access denied to this app")

    token = issuer.issue(current.id, app, role, current.client_id)
    redirect_url = f"{target.domain.rstrip('/')}/sso?{urlencode({'token': token})}"
    return SSOIssueResponse(token=token, redirect_url=redirect_url)


@portal_router.get("/apps", response_model=PortalAppsResponse)
async def my_apps(
    db: AsyncSession = Depends(get_db),
    current: PortalUser = Depends(require_active_user),
):
    rows = await TenancyDirectory(db).list_apps_for_user(current.id, current.client_id)
    return PortalAppsResponse(
        client_id=current.client_id,
        apps=[
            PortalAppOut(id=app.id, slug=app.slug, name=app.name, domain=app.domain, role=role)
            for app, role in rows
        ],
    )
