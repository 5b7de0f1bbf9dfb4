"""Celery application and job queue selection."""

from __future__ import annotations

from celery import Celery

from vendor_risk.config import Settings
from vendor_risk.services.jobs import CeleryJobQueue, InMemoryJobQueue, JobQueue


def create_celery_app(settings: Settings) -> Celery:
    app = Celery("vendor_risk", broker=settings.redis_url, backend=settings.redis_url)
    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        timezone="UTC",
    )
    return app


def build_job_queue(settings: Settings) -> JobQueue:
    """Queue backend selected by ``settings.job_queue_backend``."""
    if settings.job_queue_backend == "memory":
        return InMemoryJobQueue()
    return CeleryJobQueue(create_celery_app(settings))
