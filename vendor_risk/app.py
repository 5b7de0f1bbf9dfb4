"""Vendor Risk: FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from vendor_risk.celery_app import build_job_queue
from vendor_risk.config import Settings, get_settings
from vendor_risk.container import build_services
from vendor_risk.errors import register_exception_handlers
from vendor_risk.middleware import configure_cors, configure_rate_limiting, configure_request_logging, lifespan
from vendor_risk.routers import audit_logs, auth, health, organisations, suppliers, users
from vendor_risk.services.analysis import AnalysisCapability
from vendor_risk.services.jobs import JobQueue
from vendor_risk.store import DataStore


def create_app(
    settings: Settings | None = None,
    *,
    store: DataStore | None = None,
    job_queue: JobQueue | None = None,
    analyzer: AnalysisCapability | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators not passed in are built from ``settings``.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Multi-tenant supplier risk management with AI enrichment",
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.owns_job_queue = job_queue is None
    app.state.services = build_services(
        settings,
        store=store or DataStore(settings.database_url, echo=settings.debug),
        job_queue=job_queue or build_job_queue(settings),
        analyzer=analyzer,
    )

    # Middleware
    register_exception_handlers(app, expose_stack=not settings.is_production)
    configure_cors(app, settings)
    configure_rate_limiting(app, settings)
    configure_request_logging(app)

    # Routers
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(suppliers.router)
    app.include_router(audit_logs.router)
    app.include_router(users.router)
    app.include_router(organisations.router)

    return app


# Default app instance for uvicorn
app = create_app()
