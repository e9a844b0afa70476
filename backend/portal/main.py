import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError

from portal.auth.router import router as auth_router
from portal.core.config import settings
from portal.core.errors import ServiceUnavailable, register_exception_handlers
from portal.db.init_db import init_db
from portal.db.seed import run_seed
from portal.db.session import engine
from portal.sso.issuer import ensure_sso_configured
from portal.sso.router import portal_router
from portal.sso.router import router as sso_router
from portal.system.router import router as system_router
from portal.tenancy.router import apps_router, clients_router, grants_router
from portal.users.router import router as users_router

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Multi-tenant Client Portal",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Client-Id"],
)

register_exception_handlers(app)


@app.on_event("startup")
async def on_startup() -> None:
    db_url = make_url(settings.DATABASE_URL)
    logger.info(
        "Config sanity: env=%s db_host=%s cors_origins=%s access_exp_min=%s sso_ttl_s=%s app_session_ttl_s=%s skew_s=%s",
        settings.ENV,
        db_url.host or "local",
        len(settings.CORS_ORIGINS),
        settings.JWT_ACCESS_EXP_MINUTES,
        settings.SSO_TOKEN_TTL_SECONDS,
        settings.APP_SESSION_TTL_SECONDS,
        settings.SSO_CLOCK_SKEW_SECONDS,
    )
    ensure_sso_configured()
    await init_db()
    if settings.SEED_DEMO_DATA:
        await run_seed()


# --- Routers ---
app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(sso_router, prefix="/sso", tags=["sso"])
app.include_router(portal_router, prefix="/api/v1/portal", tags=["portal"])
app.include_router(clients_router, prefix="/api/v1/clients", tags=["clients"])
app.include_router(apps_router, prefix="/api/v1/apps", tags=["apps"])
app.include_router(grants_router, prefix="/api/v1/grants", tags=["grants"])
app.include_router(users_router, prefix="/api/v1/users", tags=["users"])
app.include_router(system_router, prefix="/api/v1/system", tags=["system"])


# --- System ---
@app.get("/health", tags=["system"])
async def health():
    return {"status": "ok"}


@app.get("/ready", tags=["system"])
async def readiness():
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        raise ServiceUnavailable("Database not ready") from exc
    return {"status": "ready"}
