from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from portal.core.config import settings

DATABASE_URL = settings.DATABASE_URL


def build_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        engine_kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            engine_kwargs["poolclass"] = StaticPool
        return create_async_engine(url, **engine_kwargs)

    return create_async_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )


engine = build_engine(DATABASE_URL)

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


async def get_db():
    async with SessionLocal() as db:
        yield db
