"""AI enrichment job lifecycle for suppliers.

State machine per supplier::

    (none) -> pending -> processing -> complete | error
                 ^                         |
                 +------ supplier edit ----+

Every applied edit resets the cycle to ``pending`` and enqueues a new
``analyze-supplier`` job. The worker never raises for a supplier that has
disappeared in the meantime; it simply stops.

Baseline behaviour is last-writer-wins: a worker still running a superseded
cycle writes its result over the newer one. With ``fence_stale_jobs`` the
worker only writes while the supplier is still on the job's cycle.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.orm import Session

from vendor_risk.errors import EnrichmentFailed
from vendor_risk.models import AiStatus, Supplier
from vendor_risk.models.base import utcnow
from vendor_risk.services.analysis import AnalysisCapability, AnalysisRequest
from vendor_risk.services.jobs import Backoff, JobOptions, JobQueue
from vendor_risk.services.tenant_scope import scoped_select, scoped_update
from vendor_risk.store import DataStore

logger = structlog.get_logger()

ANALYZE_SUPPLIER_JOB = "analyze-supplier"
ERROR_MESSAGE_LIMIT = 500


class EnrichmentService:
    """Resets, enqueues and runs supplier analysis cycles."""

    def __init__(
        self,
        store: DataStore,
        analyzer: AnalysisCapability,
        queue: JobQueue,
        options: JobOptions | None = None,
        *,
        fence_stale_jobs: bool = False,
    ) -> None:
        self.store = store
        self.analyzer = analyzer
        self.queue = queue
        self.options = options or JobOptions(attempts=3, backoff=Backoff("exponential", 5.0))
        self.fence_stale_jobs = fence_stale_jobs
        queue.register(ANALYZE_SUPPLIER_JOB, self.process)

    @staticmethod
    def reset_cycle(supplier: Supplier) -> None:
        """Start a new cycle on an in-session supplier: pending, stale results cleared."""
        supplier.ai_status = AiStatus.PENDING.value
        supplier.ai_risk_score = None
        supplier.ai_analysis = None
        supplier.ai_error = None
        supplier.ai_cycle = (supplier.ai_cycle or 0) + 1

    def request_analysis(self, supplier: Supplier) -> str:
        """Enqueue the job for the supplier's current cycle. Call after commit."""
        payload = {
            "supplierId": supplier.id,
            "organizationId": supplier.organization_id,
            "cycle": supplier.ai_cycle,
        }
        job_id = self.queue.enqueue(ANALYZE_SUPPLIER_JOB, payload, self.options)
        logger.info(
            "ai_job_enqueued",
            job_id=job_id,
            supplier_id=supplier.id,
            organization_id=supplier.organization_id,
            cycle=supplier.ai_cycle,
        )
        return job_id

    def _write(
        self,
        session: Session,
        supplier_id: str,
        organization_id: str,
        cycle: int | None,
        values: dict[str, Any],
    ) -> bool:
        statement = scoped_update(Supplier, organization_id).where(Supplier.id == supplier_id)
        if self.fence_stale_jobs and cycle is not None:
            statement = statement.where(Supplier.ai_cycle == cycle)
        result = session.execute(
            statement.values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return True

        exists = session.scalar(scoped_select(Supplier, organization_id).where(Supplier.id == supplier_id))
        if exists is None:
            logger.info("ai_job_supplier_missing", supplier_id=supplier_id, organization_id=organization_id)
        else:
            logger.info(
                "stale_ai_result_discarded",
                supplier_id=supplier_id,
                job_cycle=cycle,
                current_cycle=exists.ai_cycle,
            )
        return False

    def process(self, payload: dict[str, Any]) -> None:
        """Job handler for ``analyze-supplier``.

        Raises:
            EnrichmentFailed: the analyzer failed. The error is recorded on
                the supplier first so the job system can retry.
        """
        supplier_id = payload["supplierId"]
        organization_id = payload["organizationId"]
        cycle = payload.get("cycle")

        with self.store.transaction(organization_id) as session:
            claimed = self._write(
                session,
                supplier_id,
                organization_id,
                cycle,
                {
                    "ai_status": AiStatus.PROCESSING.value,
                    "ai_last_requested_at": utcnow(),
                    "ai_error": None,
                },
            )
        if not claimed:
            return

        with self.store.transaction(organization_id) as session:
            supplier = session.scalar(scoped_select(Supplier, organization_id).where(Supplier.id == supplier_id))
            if supplier is None:
                logger.info("ai_job_supplier_missing", supplier_id=supplier_id, organization_id=organization_id)
                return
            request = AnalysisRequest(
                supplier_id=supplier.id,
                name=supplier.name,
                domain=supplier.domain,
                category=supplier.category,
                notes=supplier.notes,
                organization_id=supplier.organization_id,
            )

        try:
            result = self.analyzer.analyze(request)
        except Exception as exc:
            message = (str(exc) or exc.__class__.__name__)[:ERROR_MESSAGE_LIMIT]
            with self.store.transaction(organization_id) as session:
                self._write(
                    session,
                    supplier_id,
                    organization_id,
                    cycle,
                    {"ai_status": AiStatus.ERROR.value, "ai_error": message},
                )
            logger.warning("ai_job_failed", supplier_id=supplier_id, cycle=cycle, error=message)
            raise EnrichmentFailed(message) from exc

        with self.store.transaction(organization_id) as session:
            written = self._write(
                session,
                supplier_id,
                organization_id,
                cycle,
                {
                    "ai_status": AiStatus.COMPLETE.value,
                    "ai_risk_score": result.score,
                    "ai_analysis": result.analysis,
                    "ai_last_completed_at": utcnow(),
                    "ai_error": None,
                },
            )
        if written:
            logger.info("ai_job_completed", supplier_id=supplier_id, cycle=cycle, score=result.score)
