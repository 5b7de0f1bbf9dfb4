"""Shared test fixtures for the Vendor Risk test suite."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest
from fastapi.testclient import TestClient

from vendor_risk.app import create_app
from vendor_risk.config import Settings
from vendor_risk.models import Organisation, Supplier, User
from vendor_risk.services.access import Principal
from vendor_risk.services.analysis import MockAnalyzer
from vendor_risk.services.auth import hash_password
from vendor_risk.services.jobs import InMemoryJobQueue
from vendor_risk.services.permissions import Role
from vendor_risk.store import DataStore

TEST_PASSWORD = "correct-horse-battery"
# Computed once and shared by every fixture user.
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


def _test_settings() -> Settings:
    """Return settings suitable for testing."""
    return Settings(
        _env_file=None,
        environment="development",
        debug=False,
        log_format="console",
        rate_limit_default="1000/minute",
        rate_limit_burst="2000/minute",
        allowed_origins="http://localhost:3000,http://localhost:5173",
        database_url="sqlite://",
        job_queue_backend="memory",
        ai_backend="mock",
        ai_mock_failure_rate=0.0,
        secret_key="test-secret-key-for-vendor-risk",
    )


@dataclass
class Tenant:
    """An organisation with one active user per role."""

    organization: Organisation
    users: dict[Role, User] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.organization.id

    def principal(self, role: Role) -> Principal:
        user = self.users[role]
        return Principal(user_id=user.id, email=user.email, role=role, organization_id=self.id)


def add_user(store: DataStore, organization_id: str, email: str, role: Role, *, is_active: bool = True) -> User:
    """Insert a user directly, bypassing the API."""
    with store.transaction() as session:
        user = User(
            organization_id=organization_id,
            email=email.lower(),
            first_name=email.split("@")[0].title(),
            last_name="Tester",
            password_hash=TEST_PASSWORD_HASH,
            role=role.value,
            is_active=is_active,
        )
        session.add(user)
    return user


def add_supplier(store: DataStore, organization_id: str, name: str = "Acme Co", **values) -> Supplier:
    """Insert a supplier directly, without audit entry or job."""
    values.setdefault("domain", f"{name.lower().replace(' ', '')}.example.com")
    values.setdefault("category", "SaaS")
    with store.transaction() as session:
        supplier = Supplier(organization_id=organization_id, name=name, **values)
        session.add(supplier)
    return supplier


def _make_tenant(store: DataStore, name: str, domain: str) -> Tenant:
    with store.transaction() as session:
        organization = Organisation(name=name)
        session.add(organization)
    tenant = Tenant(organization=organization)
    for role in Role:
        tenant.users[role] = add_user(store, organization.id, f"{role.value.lower()}@{domain}", role)
    return tenant


@pytest.fixture
def settings():
    """Test settings."""
    return _test_settings()


@pytest.fixture
def store():
    """Fresh in-memory SQLite store with the schema created."""
    data_store = DataStore("sqlite://")
    data_store.create_schema()
    yield data_store
    data_store.dispose()


@pytest.fixture
def job_queue():
    """In-process queue; tests drain it explicitly with run_pending()."""
    return InMemoryJobQueue()


@pytest.fixture
def analyzer():
    """Deterministic analyzer: no latency, no simulated failures."""
    return MockAnalyzer()


@pytest.fixture
def app(settings, store, job_queue, analyzer):
    """Create a fresh FastAPI app for testing."""
    return create_app(settings, store=store, job_queue=job_queue, analyzer=analyzer)


@pytest.fixture
def client(app):
    """HTTP test client."""
    return TestClient(app)


@pytest.fixture
def services(app):
    """The service container wired into the app."""
    return app.state.services


@pytest.fixture
def acme(store, app):
    """Tenant A."""
    return _make_tenant(store, "Acme Corp", "acme.test")


@pytest.fixture
def globex(store, app):
    """Tenant B."""
    return _make_tenant(store, "Globex Industries", "globex.test")


@pytest.fixture
def headers_for(services):
    """Build bearer headers for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {services.auth.create_access_token(user)}"}

    return _headers
