import secrets
from datetime import datetime

from fastapi import APIRouter, Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.auth.credentials import CredentialStore
from portal.auth.models import User
from portal.auth.security import create_access_token
from portal.core.config import settings
from portal.core.errors import Conflict, Forbidden, Unauthenticated
from portal.db.session import get_db
from portal.system.schemas import BootstrapRequest
from portal.tenancy.models import App, Client, ClientUser
from portal.tenancy.repository import AppRepository, ClientRepository, MembershipRepository

router = APIRouter()


@router.post("/bootstrap")
async def bootstrap(
    payload: BootstrapRequest,
    db: AsyncSession = Depends(get_db),
    x_bootstrap_secret: str | None = Header(default=None, alias="X-Bootstrap-Secret"),
):
    # 1) Must be enabled
    if not settings.BOOTSTRAP_ENABLED:
        raise Forbidden("Bootstrap is disabled")

    # 2) Must provide correct secret
    expected = settings.BOOTSTRAP_SECRET
    if not expected or not x_bootstrap_secret or not secrets.compare_digest(x_bootstrap_secret, expected):
        raise Unauthenticated("Invalid bootstrap secret")

    # 3) Only allowed if database is empty (no users)
    users_exist = (await db.execute(select(User.id).limit(1))).first() is not None
    if users_exist:
        raise Conflict("Bootstrap already completed")

    store = CredentialStore(db)
    admin = await store.create_user(
        email=str(payload.admin_email),
        password=payload.admin_password,
        first_name=payload.admin_first_name,
        last_name=payload.admin_last_name,
        is_hyper=True,
    )

    client = None
    if payload.client_name:
        now = datetime.utcnow()
        client = await ClientRepository(db).add(
            Client(id=payload.client_id or f"c_{secrets.token_hex(6)}", name=payload.client_name, created_at=now)
        )
        await MembershipRepository(db).add(
            ClientUser(
                id=f"cu_{secrets.token_hex(10)}",
                client_id=client.id,
                user_id=admin.id,
                role="owner",
                created_at=now,
            )
        )

    apps_repo = AppRepository(db)
    apps = [
        await apps_repo.add(
            App(id=f"app_{secrets.token_hex(8)}", slug=a.slug, name=a.name, domain=a.domain.strip().rstrip("/"))
        )
        for a in payload.apps
    ]

    token = create_access_token({"sub": admin.id, "email": admin.email})

    return {
        "admin": {"id": admin.id, "email": admin.email, "is_hyper": admin.is_hyper},
        "client": {"id": client.id, "name": client.name} if client else None,
        "apps": [{"id": a.id, "slug": a.slug, "domain": a.domain} for a in apps],
        "access_token": token,
        "token_type": "bearer",
    }
