from datetime import datetime

from sqlalchemy import select

from portal.auth.models import RecoveryToken, User
from portal.db.repository import Repository, translate_db_errors


class UserRepository(Repository):
    @translate_db_errors
    async def get(self, user_id: str) -> User | None:
        return await self.db.get(User, user_id)

    @translate_db_errors
    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    @translate_db_errors
    async def list_by_ids(self, user_ids: list[str]) -> list[User]:
        if not user_ids:
            return []
        result = await self.db.execute(select(User).where(User.id.in_(user_ids)))
        return list(result.scalars().all())

    @translate_db_errors
    async def add(self, user: User) -> User:
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    @translate_db_errors
    async def save(self, user: User) -> User:
        self.db.add(user)
        await self.db.commit()
        return user


class RecoveryTokenRepository(Repository):
    @translate_db_errors
    async def add(self, row: RecoveryToken) -> RecoveryToken:
        self.db.add(row)
        await self.db.commit()
        return row

    @translate_db_errors
    async def get_active(self, token_hash: str, *, now: datetime) -> RecoveryToken | None:
        result = await self.db.execute(
            select(RecoveryToken).where(
                RecoveryToken.token_hash == token_hash,
                RecoveryToken.consumed_at.is_(None),
                RecoveryToken.expires_at > now,
            )
        )
        return result.scalar_one_or_none()

    @translate_db_errors
    async def mark_consumed(self, row: RecoveryToken, *, now: datetime) -> None:
        row.consumed_at = now
        self.db.add(row)
        await self.db.commit()
