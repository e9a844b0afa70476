import pytest

from portal.auth.credentials import CredentialStore
from portal.authz.gate import AuthorizationGate
from portal.db.seed import seed_demo_data
from portal.tenancy.directory import TenancyDirectory

DOMAINS = {"chat": "https://chat.example.org", "dc": "https://dc.example.org"}


@pytest.mark.asyncio
async def test_seed_populates_empty_database_once(db):
    assert await seed_demo_data(db, password="Demo-Pass-123", app_domains=DOMAINS) is True
    assert await seed_demo_data(db, password="Demo-Pass-123", app_domains=DOMAINS) is False

    store = CredentialStore(db)
    agent = await store.verify_credentials("agent@example.org", "Demo-Pass-123")
    hyper = await store.find_by_email("hyper@example.org")
    assert hyper.is_hyper is True

    gate = AuthorizationGate(TenancyDirectory(db))
    assert await gate.role_in_tenant(agent.user_id, "c_acme") == "agent"
    assert await gate.role_for_app(agent.user_id, "chat", "c_acme") == "agent"
    assert await gate.has_app_access(agent.user_id, "dc", "c_acme") is False
