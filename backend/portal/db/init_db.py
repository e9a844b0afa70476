import asyncio

from sqlalchemy.ext.asyncio import AsyncEngine

from portal.db.base import Base
from portal.db.session import engine
import portal.db.models  # noqa: F401


async def init_db(bind: AsyncEngine = engine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


if __name__ == "__main__":
    asyncio.run(init_db())
