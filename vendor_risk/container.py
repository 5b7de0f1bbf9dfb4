"""Service wiring shared by the API process and the Celery worker."""

from __future__ import annotations

from dataclasses import dataclass

from vendor_risk.config import Settings
from vendor_risk.services.access import AccessDecisionService
from vendor_risk.services.analysis import AnalysisCapability, build_analyzer
from vendor_risk.services.audit import AuditRecorder
from vendor_risk.services.auth import AuthService
from vendor_risk.services.enrichment import EnrichmentService
from vendor_risk.services.jobs import Backoff, JobOptions, JobQueue
from vendor_risk.services.organisations import OrganisationService
from vendor_risk.services.suppliers import SupplierService
from vendor_risk.services.users import UserService
from vendor_risk.store import DataStore


@dataclass
class Services:
    settings: Settings
    store: DataStore
    job_queue: JobQueue
    access: AccessDecisionService
    audit: AuditRecorder
    enrichment: EnrichmentService
    suppliers: SupplierService
    users: UserService
    organisations: OrganisationService
    auth: AuthService


def job_options(settings: Settings) -> JobOptions:
    return JobOptions(
        attempts=settings.ai_job_attempts,
        backoff=Backoff("exponential", settings.ai_job_backoff_seconds),
        remove_on_complete=True,
        remove_on_fail=False,
    )


def build_services(
    settings: Settings,
    *,
    store: DataStore,
    job_queue: JobQueue,
    analyzer: AnalysisCapability | None = None,
) -> Services:
    """Construct every service once, with explicit collaborators."""
    access = AccessDecisionService()
    audit = AuditRecorder()
    enrichment = EnrichmentService(
        store,
        analyzer or build_analyzer(settings),
        job_queue,
        job_options(settings),
        fence_stale_jobs=settings.ai_fence_stale_jobs,
    )
    return Services(
        settings=settings,
        store=store,
        job_queue=job_queue,
        access=access,
        audit=audit,
        enrichment=enrichment,
        suppliers=SupplierService(store, access, audit, enrichment),
        users=UserService(store, access, audit),
        organisations=OrganisationService(store, access),
        auth=AuthService(store, settings),
    )
