import os

# Settings are read at import time, so the environment must be in place first.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-portal-session-secret-0123456789abcdef")
os.environ.setdefault("SSO_JWT_SECRET", "test-shared-sso-secret-0123456789abcdef")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("COOKIE_SECURE", "false")

import secrets  # noqa: E402
from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import Response  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402
from starlette.requests import Request  # noqa: E402

from portal.auth.credentials import CredentialStore  # noqa: E402
from portal.auth.deps import PortalUser  # noqa: E402
from portal.auth.login_guard import login_guard  # noqa: E402
from portal.auth.models import User  # noqa: E402
from portal.db.init_db import init_db  # noqa: E402
from portal.db.session import build_engine  # noqa: E402
from portal.tenancy.models import App, Client, ClientUser, UserApp  # noqa: E402
from portal.tenancy.repository import MembershipRepository  # noqa: E402

DEFAULT_PASSWORD = "Correct-Horse-9"


class Seeder:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.store = CredentialStore(db)

    async def user(self, email: str, password: str | None = DEFAULT_PASSWORD, **kwargs) -> User:
        return await self.store.create_user(email=email, password=password, **kwargs)

    async def client(self, client_id: str = "c_acme", name: str = "Acme") -> Client:
        row = Client(id=client_id, name=name, created_at=datetime.utcnow())
        self.db.add(row)
        await self.db.commit()
        return row

    async def app(self, slug: str, domain: str | None = None) -> App:
        row = App(
            id=f"app_{slug}",
            slug=slug,
            name=slug.title(),
            domain=domain or f"https://{slug}.example.com",
        )
        self.db.add(row)
        await self.db.commit()
        return row

    async def member(self, user: User, client_id: str, role: str = "agent") -> ClientUser:
        row = ClientUser(
            id=f"cu_{secrets.token_hex(6)}",
            client_id=client_id,
            user_id=user.id,
            role=role,
            created_at=datetime.utcnow(),
        )
        self.db.add(row)
        await self.db.commit()
        return row

    async def grant(self, user: User, app: App, client_id: str | None, role: str = "user") -> UserApp:
        row = UserApp(
            id=f"ua_{secrets.token_hex(6)}",
            user_id=user.id,
            app_id=app.id,
            client_id=client_id,
            role=role,
            created_at=datetime.utcnow(),
        )
        self.db.add(row)
        await self.db.commit()
        return row

    async def portal_user(self, user: User, client_id: str | None) -> PortalUser:
        role = None
        if client_id:
            membership = await MembershipRepository(self.db).get(user.id, client_id)
            role = membership.role if membership else None
        return PortalUser(user=user, client_id=client_id, role=role)


def make_request(client_ip: str = "10.0.0.1", headers: dict | None = None) -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/",
            "headers": raw_headers,
            "query_string": b"",
            "client": (client_ip, 50000),
            "server": ("testserver", 80),
            "scheme": "http",
        }
    )


@pytest_asyncio.fixture
async def db():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_db(bind=engine)
    factory = async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def seed(db) -> Seeder:
    return Seeder(db)


@pytest.fixture
def request_factory():
    return make_request


@pytest.fixture
def response() -> Response:
    return Response()


@pytest.fixture(autouse=True)
def _reset_login_guard():
    login_guard.reset()
    yield
    login_guard.reset()
