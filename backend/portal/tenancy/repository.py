from sqlalchemy import delete, select

from portal.db.repository import Repository, translate_db_errors
from portal.tenancy.models import App, Client, ClientUser, UserApp


class ClientRepository(Repository):
    @translate_db_errors
    async def get(self, client_id: str) -> Client | None:
        return await self.db.get(Client, client_id)

    @translate_db_errors
    async def list_all(self) -> list[Client]:
        result = await self.db.execute(select(Client).order_by(Client.name.asc()))
        return list(result.scalars().all())

    @translate_db_errors
    async def add(self, client: Client) -> Client:
        self.db.add(client)
        await self.db.commit()
        await self.db.refresh(client)
        return client


class AppRepository(Repository):
    @translate_db_errors
    async def get_by_slug(self, slug: str) -> App | None:
        result = await self.db.execute(select(App).where(App.slug == slug))
        return result.scalar_one_or_none()

    @translate_db_errors
    async def list_all(self) -> list[App]:
        result = await self.db.execute(select(App).order_by(App.name.asc()))
        return list(result.scalars().all())

    @translate_db_errors
    async def list_by_slugs(self, slugs: list[str]) -> list[App]:
        if not slugs:
            return []
        result = await self.db.execute(select(App).where(App.slug.in_(slugs)))
        return list(result.scalars().all())

    @translate_db_errors
    async def add(self, app: App) -> App:
        self.db.add(app)
        await self.db.commit()
        await self.db.refresh(app)
        return app


class MembershipRepository(Repository):
    @translate_db_errors
    async def get(self, user_id: str, client_id: str) -> ClientUser | None:
        result = await self.db.execute(
            select(ClientUser).where(
                ClientUser.user_id == user_id,
                ClientUser.client_id == client_id,
            )
        )
        return result.scalar_one_or_none()

    @translate_db_errors
    async def get_in_client(self, membership_id: str, client_id: str) -> ClientUser | None:
        result = await self.db.execute(
            select(ClientUser).where(
                ClientUser.id == membership_id,
                ClientUser.client_id == client_id,
            )
        )
        return result.scalar_one_or_none()

    @translate_db_errors
    async def first_for_user(self, user_id: str) -> ClientUser | None:
        result = await self.db.execute(
            select(ClientUser)
            .where(ClientUser.user_id == user_id)
            .order_by(ClientUser.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @translate_db_errors
    async def list_for_client(self, client_id: str) -> list[ClientUser]:
        result = await self.db.execute(
            select(ClientUser)
            .where(ClientUser.client_id == client_id)
            .order_by(ClientUser.created_at.asc())
        )
        return list(result.scalars().all())

    @translate_db_errors
    async def list_for_user(self, user_id: str) -> list[ClientUser]:
        result = await self.db.execute(select(ClientUser).where(ClientUser.user_id == user_id))
        return list(result.scalars().all())

    @translate_db_errors
    async def add(self, membership: ClientUser) -> ClientUser:
        self.db.add(membership)
        await self.db.commit()
        await self.db.refresh(membership)
        return membership

    @translate_db_errors
    async def save(self, membership: ClientUser) -> ClientUser:
        self.db.add(membership)
        await self.db.commit()
        return membership

    @translate_db_errors
    async def delete(self, membership: ClientUser) -> None:
        await self.db.delete(membership)
        await self.db.commit()


class GrantRepository(Repository):
    def _scoped(self, stmt, client_id: str | None):
        # One lookup path per call: tenant-scoped or global, never both.
        if client_id is not None:
            return stmt.where(UserApp.client_id == client_id)
        return stmt.where(UserApp.client_id.is_(None))

    @translate_db_errors
    async def find(self, user_id: str, app_id: str, client_id: str | None) -> UserApp | None:
        stmt = select(UserApp).where(UserApp.user_id == user_id, UserApp.app_id == app_id)
        result = await self.db.execute(self._scoped(stmt, client_id).limit(1))
        return result.scalar_one_or_none()

    @translate_db_errors
    async def get_in_scope(self, grant_id: str, client_id: str | None) -> UserApp | None:
        stmt = select(UserApp).where(UserApp.id == grant_id)
        result = await self.db.execute(self._scoped(stmt, client_id))
        return result.scalar_one_or_none()

    @translate_db_errors
    async def list_for_user(self, user_id: str, client_id: str | None) -> list[tuple[UserApp, App]]:
        stmt = (
            select(UserApp, App)
            .join(App, App.id == UserApp.app_id)
            .where(UserApp.user_id == user_id)
            .order_by(App.name.asc())
        )
        result = await self.db.execute(self._scoped(stmt, client_id))
        return [(grant, app) for grant, app in result.all()]

    @translate_db_errors
    async def list_in_scope(self, client_id: str | None) -> list[tuple[UserApp, App]]:
        stmt = select(UserApp, App).join(App, App.id == UserApp.app_id).order_by(UserApp.created_at.asc())
        result = await self.db.execute(self._scoped(stmt, client_id))
        return [(grant, app) for grant, app in result.all()]

    @translate_db_errors
    async def replace(self, grants: list[UserApp]) -> list[UserApp]:
        """Insert ``grants`` after removing any existing row for the same scope."""
        for grant in grants:
            stmt = delete(UserApp).where(UserApp.user_id == grant.user_id, UserApp.app_id == grant.app_id)
            await self.db.execute(self._scoped(stmt, grant.client_id))
            self.db.add(grant)
        await self.db.commit()
        return grants

    @translate_db_errors
    async def delete(self, grant: UserApp) -> None:
        await self.db.delete(grant)
        await self.db.commit()

    @translate_db_errors
    async def delete_for_user(self, user_id: str, client_id: str | None) -> int:
        stmt = delete(UserApp).where(UserApp.user_id == user_id)
        result = await self.db.execute(self._scoped(stmt, client_id))
        await self.db.commit()
        return int(result.rowcount or 0)
