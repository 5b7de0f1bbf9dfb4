"""Celery worker entry point.

Run with::

    celery -A vendor_risk.worker worker --loglevel=info
"""

from __future__ import annotations

import structlog

from vendor_risk.celery_app import create_celery_app
from vendor_risk.config import Settings, get_settings
from vendor_risk.container import Services, build_services
from vendor_risk.middleware import configure_structured_logging
from vendor_risk.services.jobs import CeleryJobQueue
from vendor_risk.store import DataStore

logger = structlog.get_logger()


def create_worker(settings: Settings) -> tuple[Services, CeleryJobQueue]:
    """Register the enrichment handler on a fresh Celery application."""
    configure_structured_logging(settings)
    queue = CeleryJobQueue(create_celery_app(settings))
    services = build_services(settings, store=DataStore(settings.database_url), job_queue=queue)
    logger.info("worker_configured", broker=settings.redis_url, fence_stale_jobs=settings.ai_fence_stale_jobs)
    return services, queue


services, _queue = create_worker(get_settings())
celery_app = app = _queue.app
