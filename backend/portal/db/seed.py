"""Demo data for local development.

Runs only on an empty database, so it is safe to leave enabled across
restarts.
"""

import asyncio
import logging
import secrets
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.auth.credentials import CredentialStore
from portal.auth.models import User
from portal.core.config import settings
from portal.db.session import SessionLocal
from portal.tenancy.models import App, Client, ClientUser, UserApp

logger = logging.getLogger(__name__)

DEMO_CLIENTS = [("c_acme", "Acme Corporation"), ("c_tech", "Tech Solutions Inc")]
# email, first name, last name, hyper, (client, tenant role) or None
DEMO_USERS = [
    ("hyper@example.org", "Hyper", "Admin", True, None),
    ("owner@example.org", "Client", "Owner", False, ("c_acme", "owner")),
    ("agent@example.org", "Regular", "Agent", False, ("c_acme", "agent")),
]
DEMO_APP_NAMES = {"chat": "Chat Assistant", "dc": "Document Center"}
# email, app slug, app role
DEMO_GRANTS = [
    ("owner@example.org", "chat", "admin"),
    ("owner@example.org", "dc", "admin"),
    ("agent@example.org", "chat", "agent"),
]


async def seed_demo_data(db: AsyncSession, *, password: str, app_domains: dict[str, str]) -> bool:
    """Return ``False`` when the database already has users."""
    if (await db.execute(select(User.id).limit(1))).first() is not None:
        logger.info("Seed skipped: users already present")
        return False

    now = datetime.utcnow()
    db.add_all([Client(id=cid, name=name, created_at=now) for cid, name in DEMO_CLIENTS])
    apps = {
        slug: App(id=f"app_{slug}", slug=slug, name=DEMO_APP_NAMES.get(slug, slug.title()), domain=domain)
        for slug, domain in app_domains.items()
    }
    db.add_all(apps.values())
    await db.commit()

    store = CredentialStore(db)
    users: dict[str, User] = {}
    for email, first_name, last_name, is_hyper, membership in DEMO_USERS:
        user = await store.create_user(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            is_hyper=is_hyper,
        )
        users[email] = user
        if membership:
            client_id, role = membership
            db.add(
                ClientUser(
                    id=f"cu_{secrets.token_hex(10)}",
                    client_id=client_id,
                    user_id=user.id,
                    role=role,
                    created_at=now,
                )
            )

    for email, slug, role in DEMO_GRANTS:
        if slug not in apps:
            continue
        db.add(
            UserApp(
                id=f"ua_{secrets.token_hex(10)}",
                user_id=users[email].id,
                app_id=apps[slug].id,
                client_id="c_acme",
                role=role,
                created_at=now,
            )
        )
    await db.commit()
    logger.info("Seeded demo data: clients=%s users=%s apps=%s", len(DEMO_CLIENTS), len(users), len(apps))
    return True


async def run_seed() -> bool:
    if not settings.SEED_DEMO_PASSWORD:
        raise RuntimeError("SEED_DEMO_PASSWORD is not set")
    async with SessionLocal() as db:
        return await seed_demo_data(db, password=settings.SEED_DEMO_PASSWORD, app_domains=settings.DEMO_APP_DOMAINS)


if __name__ == "__main__":
    asyncio.run(run_seed())
