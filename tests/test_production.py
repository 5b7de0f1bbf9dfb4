"""Production hardening: health checks, CORS, rate limiting, config, logging.

Tests cover: health and readiness probes, CORS, rate limiting, environment
configuration, structured logging, request ids, the error envelope and
deployment files.
"""

from __future__ import annotations

import os

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from vendor_risk.app import create_app
from vendor_risk.config import Settings
from vendor_risk.middleware import configure_structured_logging, get_limiter, is_shutdown_requested
from vendor_risk.services.jobs import CeleryJobQueue, InMemoryJobQueue
from vendor_risk.celery_app import build_job_queue
from vendor_risk.store import DataStore
from tests.conftest import _test_settings

PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))


def _app(**overrides) -> FastAPI:
    settings = _test_settings().model_copy(update=overrides)
    return create_app(settings, job_queue=InMemoryJobQueue())


# ─── Health checks ───────────────────────────────────────────────────────────

class TestHealthChecks:
    """Tests for health check endpoints."""

    def test_basic_health_check(self, client):
        """GET /health should return healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["environment"] == "development"

    def test_readiness_includes_database(self, client):
        """GET /health/ready checks the database."""
        data = client.get("/health/ready").json()
        assert data["status"] == "healthy"
        names = {s["service"] for s in data["services"]}
        assert names == {"app", "database"}
        for service in data["services"]:
            assert service["latency_ms"] >= 0

    def test_readiness_reports_unhealthy_database(self, settings, job_queue):
        """A broken database makes readiness unhealthy, not a 500."""
        store = DataStore("sqlite://")
        app = create_app(settings, store=store, job_queue=job_queue)

        def broken_ping():
            raise RuntimeError("connection refused")

        store.ping = broken_ping
        data = TestClient(app).get("/health/ready").json()
        assert data["status"] == "unhealthy"
        database = next(s for s in data["services"] if s["service"] == "database")
        assert database["status"] == "unhealthy"
        assert "connection refused" in database["details"]

    def test_liveness_check(self, client):
        """GET /health/live should return alive status."""
        assert client.get("/health/live").json() == {"status": "alive"}

    def test_health_is_public(self, client):
        """Probes need no token."""
        assert client.get("/health/ready").status_code == 200


# ─── CORS ────────────────────────────────────────────────────────────────────

class TestCORSConfiguration:
    """Tests for CORS middleware configuration."""

    def test_cors_allows_configured_origin(self):
        """CORS should allow requests from configured origins."""
        client = TestClient(_app(allowed_origins="http://localhost:3000"))
        response = client.options(
            "/api/suppliers",
            headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "PATCH"},
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert "PATCH" in response.headers["access-control-allow-methods"]

    def test_cors_rejects_unconfigured_origin(self):
        """CORS should not echo unknown origins."""
        client = TestClient(_app(allowed_origins="http://localhost:3000"))
        response = client.options(
            "/health",
            headers={"Origin": "http://evil.example.com", "Access-Control-Request-Method": "GET"},
        )
        assert "evil.example.com" not in response.headers.get("access-control-allow-origin", "")

    def test_cors_multiple_origins(self):
        """Comma-separated origins are parsed into a list."""
        settings = Settings(_env_file=None, allowed_origins="http://a.com, http://b.com, http://c.com")
        assert settings.allowed_origins_list == ["http://a.com", "http://b.com", "http://c.com"]


# ─── Rate limiting ───────────────────────────────────────────────────────────

class TestRateLimiting:
    """Tests for rate limiting configuration."""

    def test_rate_limiter_configured(self, app):
        """Application should have a rate limiter configured."""
        assert app.state.limiter is not None

    def test_get_limiter_returns_limiter(self, settings):
        """get_limiter builds a limiter from settings."""
        assert get_limiter(settings) is not None

    def test_limit_exceeded_returns_429(self):
        """Requests beyond the default limit are rejected."""
        client = TestClient(_app(rate_limit_default="2/minute", rate_limit_burst="100/minute"))
        statuses = [client.get("/health/live").status_code for _ in range(3)]
        assert statuses[:2] == [200, 200]
        assert statuses[2] == 429

    def test_burst_limit_enforced(self):
        """The burst limit applies alongside the default limit."""
        client = TestClient(_app(rate_limit_default="100/minute", rate_limit_burst="2/minute"))
        statuses = [client.get("/health").status_code for _ in range(3)]
        assert statuses == [200, 200, 429]

    def test_limit_shared_across_routes(self):
        """The per-client budget counts requests to every route."""
        client = TestClient(_app(rate_limit_default="2/minute", rate_limit_burst="100/minute"))
        assert client.get("/health").status_code == 200
        assert client.get("/health/live").status_code == 200
        assert client.get("/health/ready").status_code == 429

    def test_routes_added_later_are_limited(self):
        """Routes registered after the factory runs share the limit."""
        app = _app(rate_limit_default="1/minute", rate_limit_burst="100/minute")
        app.add_api_route("/extra", lambda: {"ok": True})
        client = TestClient(app)
        assert client.get("/extra").status_code == 200
        assert client.get("/extra").status_code == 429


# ─── Environment configuration ───────────────────────────────────────────────

class TestEnvironmentConfig:
    """Tests for environment variable management."""

    def test_default_settings_valid(self):
        """Defaults are usable without any env vars."""
        settings = Settings(_env_file=None)
        assert settings.app_name == "Vendor Risk"
        assert settings.environment == "development"
        assert "postgresql" in settings.database_url
        assert "redis://" in settings.redis_url
        assert settings.job_queue_backend == "celery"
        assert settings.ai_job_attempts == 3
        assert settings.ai_job_backoff_seconds == 5.0
        assert settings.ai_fence_stale_jobs is False

    def test_env_prefix(self, monkeypatch):
        """Variables are read with the VENDOR_RISK_ prefix."""
        monkeypatch.setenv("VENDOR_RISK_AI_JOB_ATTEMPTS", "7")
        monkeypatch.setenv("VENDOR_RISK_ENVIRONMENT", "staging")
        settings = Settings(_env_file=None)
        assert settings.ai_job_attempts == 7
        assert settings.environment == "staging"

    def test_invalid_environment_rejected(self):
        """Environment must be one of development, staging, production."""
        with pytest.raises(ValueError):
            Settings(_env_file=None, environment="qa")

    def test_invalid_failure_rate_rejected(self):
        """The mock failure rate is a probability."""
        with pytest.raises(ValueError):
            Settings(_env_file=None, ai_mock_failure_rate=1.5)

    def test_is_production(self):
        """is_production follows the environment."""
        assert Settings(_env_file=None, environment="production").is_production is True
        assert Settings(_env_file=None).is_production is False

    def test_env_file_example_exists(self):
        """.env.example documents the key variables."""
        with open(os.path.join(PROJECT_ROOT, ".env.example")) as f:
            content = f.read()
        for var in (
            "VENDOR_RISK_DATABASE_URL",
            "VENDOR_RISK_REDIS_URL",
            "VENDOR_RISK_SECRET_KEY",
            "VENDOR_RISK_ENVIRONMENT",
            "VENDOR_RISK_JOB_QUEUE_BACKEND",
            "VENDOR_RISK_AI_JOB_ATTEMPTS",
        ):
            assert var in content, f"{var} missing from .env.example"

    def test_job_queue_backend_selection(self):
        """The memory backend runs in-process; celery goes through a broker."""
        assert isinstance(build_job_queue(_test_settings()), InMemoryJobQueue)
        celery_settings = _test_settings().model_copy(update={"job_queue_backend": "celery"})
        assert isinstance(build_job_queue(celery_settings), CeleryJobQueue)


# ─── Logging and request ids ─────────────────────────────────────────────────

class TestStructuredLogging:
    """Tests for structlog configuration and request correlation."""

    @pytest.mark.parametrize("fmt", ["json", "console"])
    def test_configure_structured_logging(self, fmt):
        """Structured logging should be configurable without errors."""
        configure_structured_logging(Settings(_env_file=None, log_format=fmt))

    def test_request_id_generated(self, client):
        """Every response carries a request id."""
        assert client.get("/health/live").headers.get("X-Request-ID")

    def test_request_id_echoed(self, client):
        """A caller-supplied request id is propagated."""
        response = client.get("/health/live", headers={"X-Request-ID": "trace-123"})
        assert response.headers["X-Request-ID"] == "trace-123"

    def test_shutdown_flag_follows_lifespan(self):
        """The flag is cleared on startup and raised on shutdown."""
        with TestClient(_app()) as client:
            assert is_shutdown_requested() is False
            client.get("/health/live")
        assert is_shutdown_requested() is True

    def test_lifespan_runs(self, app):
        """Startup and shutdown complete under the test client."""
        with TestClient(app) as client:
            assert client.get("/health").status_code == 200


# ─── Error envelope ──────────────────────────────────────────────────────────

class TestErrorEnvelope:
    """Unexpected errors are rendered, never leaked as HTML."""

    @staticmethod
    def _with_failing_route(app: FastAPI) -> TestClient:
        def explode():
            raise RuntimeError("kaboom")

        app.add_api_route("/explode", explode)
        return TestClient(app, raise_server_exceptions=False)

    def test_unexpected_error_development(self, app):
        """Outside production the stack trace is included."""
        response = self._with_failing_route(app).get("/explode")
        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Internal server error"
        assert body["statusCode"] == 500
        assert "kaboom" in body["stack"]

    def test_unexpected_error_production(self):
        """Production hides the stack trace."""
        response = self._with_failing_route(_app(environment="production")).get("/explode")
        assert response.status_code == 500
        assert "stack" not in response.json()

    def test_unknown_route(self, client):
        """Unknown paths are a plain 404."""
        assert client.get("/api/nothing-here").status_code == 404


# ─── Application factory ─────────────────────────────────────────────────────

class TestApplicationFactory:
    """Tests for the application factory pattern."""

    def test_create_app_returns_fastapi(self, app):
        """create_app should return a FastAPI instance."""
        assert isinstance(app, FastAPI)

    def test_create_app_with_custom_settings(self):
        """App should respect custom settings."""
        assert _app(app_version="9.9.9").version == "9.9.9"

    def test_injected_queue_not_owned(self, app):
        """An injected queue is drained by the caller, not by the app."""
        assert app.state.owns_job_queue is False

    def test_all_routers_registered(self, app):
        """All expected route prefixes should be registered."""
        routes = list(app.openapi()["paths"])
        for prefix in ("/health", "/api/auth", "/api/suppliers", "/api/audit-logs", "/api/users", "/api/organisations"):
            assert any(r.startswith(prefix) for r in routes), prefix

    def test_openapi_schema_generated(self, client):
        """OpenAPI schema should be generated and accessible."""
        schema = client.get("/openapi.json").json()
        assert schema["info"]["title"] == "Vendor Risk"
        endpoint_count = sum(len(methods) for methods in schema["paths"].values())
        assert endpoint_count >= 15, f"Expected 15+ endpoints, got {endpoint_count}"


# ─── Database migrations ─────────────────────────────────────────────────────

class TestDatabaseMigrations:
    """Tests for database migration configuration."""

    def test_alembic_config_exists(self):
        """Alembic configuration file should exist."""
        assert os.path.exists(os.path.join(PROJECT_ROOT, "alembic.ini"))

    def test_initial_migration_creates_tables(self):
        """The first migration creates every table."""
        path = os.path.join(PROJECT_ROOT, "alembic", "versions", "001_initial_schema.py")
        with open(path) as f:
            content = f.read()
        for table in ("organisations", "users", "suppliers", "audit_logs"):
            assert f'"{table}"' in content

    def test_row_level_security_migration(self):
        """The second migration installs tenant isolation policies."""
        path = os.path.join(PROJECT_ROOT, "alembic", "versions", "002_row_level_security.py")
        with open(path) as f:
            content = f.read()
        assert "ENABLE ROW LEVEL SECURITY" in content
        assert "app.current_org_id" in content
