from sqlalchemy.ext.asyncio import AsyncSession

from portal.tenancy.models import App, ClientUser, UserApp
from portal.tenancy.repository import AppRepository, GrantRepository, MembershipRepository


class TenancyDirectory:
    """Who belongs to which client, and which apps they may reach."""

    def __init__(self, db: AsyncSession) -> None:
        self.apps = AppRepository(db)
        self.memberships = MembershipRepository(db)
        self.grants = GrantRepository(db)

    async def membership(self, user_id: str, client_id: str) -> ClientUser | None:
        return await self.memberships.get(user_id, client_id)

    async def primary_membership(self, user_id: str) -> ClientUser | None:
        return await self.memberships.first_for_user(user_id)

    async def role_in_tenant(self, user_id: str, client_id: str) -> str | None:
        row = await self.memberships.get(user_id, client_id)
        return row.role if row else None

    async def resolve_app(self, app_slug: str) -> App | None:
        return await self.apps.get_by_slug(app_slug)

    async def grant_for(self, user_id: str, app_slug: str, client_id: str | None) -> UserApp | None:
        app = await self.apps.get_by_slug(app_slug)
        if not app:
            return None
        return await self.grants.find(user_id, app.id, client_id)

    async def list_apps_for_user(self, user_id: str, client_id: str | None) -> list[tuple[App, str]]:
        rows = await self.grants.list_for_user(user_id, client_id)
        return [(app, grant.role) for grant, app in rows]

    async def role_for_app(self, user_id: str, app_slug: str, client_id: str | None) -> str | None:
        grant = await self.grant_for(user_id, app_slug, client_id)
        return grant.role if grant else None
