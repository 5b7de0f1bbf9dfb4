"""Job queue contract and its two backends.

A queue accepts ``(name, payload, options)`` and delivers the payload to the
handler registered under ``name``. Delivery is at-least-once: failed
handlers are retried with backoff until ``options.attempts`` is used up,
and exhausted jobs are kept for inspection.

``InMemoryJobQueue`` runs in-process (tests, local development).
``CeleryJobQueue`` maps each handler onto a Celery task.
"""

from __future__ import annotations

import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import structlog
from celery import Celery

logger = structlog.get_logger()

JobHandler = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class Backoff:
    kind: str = "exponential"
    delay: float = 5.0

    def delay_for(self, failed_attempts: int) -> float:
        """Seconds to wait after the ``failed_attempts``-th failure."""
        if self.kind == "fixed":
            return self.delay
        return self.delay * 2 ** max(0, failed_attempts - 1)


@dataclass(frozen=True)
class JobOptions:
    attempts: int = 3
    backoff: Backoff = field(default_factory=Backoff)
    remove_on_complete: bool = True
    remove_on_fail: bool = False


class JobQueue(Protocol):
    def register(self, name: str, handler: JobHandler) -> None: ...

    def enqueue(self, name: str, payload: dict[str, Any], options: JobOptions | None = None) -> str: ...


@dataclass
class Job:
    id: str
    name: str
    payload: dict[str, Any]
    options: JobOptions
    attempts_made: int = 0
    state: str = "waiting"
    failed_reason: str | None = None
    run_at: float = 0.0


class InMemoryJobQueue:
    """FIFO in-process queue with retry, backoff and a failed-job set."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._handlers: dict[str, JobHandler] = {}
        self._waiting: deque[Job] = deque()
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.completed_jobs: list[Job] = []
        self.failed_jobs: list[Job] = []

    def register(self, name: str, handler: JobHandler) -> None:
        self._handlers[name] = handler

    def enqueue(self, name: str, payload: dict[str, Any], options: JobOptions | None = None) -> str:
        if name not in self._handlers:
            raise LookupError(f"No handler registered for job '{name}'")
        job = Job(id=str(uuid.uuid4()), name=name, payload=dict(payload), options=options or JobOptions())
        job.run_at = self._clock()
        with self._lock:
            self._waiting.append(job)
        logger.debug("job_enqueued", job_id=job.id, job_name=name)
        return job.id

    @property
    def pending(self) -> list[Job]:
        with self._lock:
            return list(self._waiting)

    def _claim(self, ignore_delays: bool) -> Job | None:
        now = self._clock()
        with self._lock:
            for job in self._waiting:
                if ignore_delays or job.run_at <= now:
                    self._waiting.remove(job)
                    job.state = "active"
                    return job
        return None

    def _execute(self, job: Job) -> None:
        job.attempts_made += 1
        try:
            self._handlers[job.name](job.payload)
        except Exception as exc:
            job.failed_reason = str(exc)
            if job.attempts_made < job.options.attempts:
                delay = job.options.backoff.delay_for(job.attempts_made)
                job.state = "delayed"
                job.run_at = self._clock() + delay
                with self._lock:
                    self._waiting.append(job)
                logger.warning(
                    "job_retry_scheduled",
                    job_id=job.id,
                    job_name=job.name,
                    attempt=job.attempts_made,
                    delay_seconds=delay,
                    error=job.failed_reason,
                )
                return
            job.state = "failed"
            if not job.options.remove_on_fail:
                self.failed_jobs.append(job)
            logger.error(
                "job_exhausted",
                job_id=job.id,
                job_name=job.name,
                attempts=job.attempts_made,
                error=job.failed_reason,
            )
            return

        job.state = "completed"
        if not job.options.remove_on_complete:
            self.completed_jobs.append(job)

    def run_pending(self, *, ignore_delays: bool = True) -> int:
        """Process jobs until none is due; returns the number of attempts made.

        With ``ignore_delays`` retries run immediately, which keeps tests
        deterministic.
        """
        executed = 0
        while (job := self._claim(ignore_delays)) is not None:
            self._execute(job)
            executed += 1
        return executed

    def start(self, poll_interval: float = 0.5, should_stop: Callable[[], bool] | None = None) -> None:
        """Drain the queue from a background thread.

        The loop exits once ``stop()`` is called or ``should_stop`` returns True.
        """
        if self._thread is not None:
            return
        self._stop.clear()
        should_stop = should_stop or (lambda: False)

        def _loop() -> None:
            while not self._stop.is_set() and not should_stop():
                self.run_pending(ignore_delays=False)
                self._stop.wait(poll_interval)

        self._thread = threading.Thread(target=_loop, name="job-worker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=5)
        self._thread = None


class CeleryJobQueue:
    """Registers handlers as bound Celery tasks retried with backoff."""

    def __init__(self, celery_app: Celery) -> None:
        self.app = celery_app
        self._tasks: dict[str, Any] = {}

    def register(self, name: str, handler: JobHandler) -> None:
        @self.app.task(name=name, bind=True, shared=False, store_errors_even_if_ignored=True)
        def run(task: Any, payload: dict[str, Any], attempts: int, backoff_kind: str, backoff_delay: float) -> None:
            try:
                handler(payload)
            except Exception as exc:
                attempt = task.request.retries + 1
                if attempt >= attempts:
                    logger.error("job_exhausted", job_id=task.request.id, job_name=name, attempts=attempt, error=str(exc))
                    raise
                countdown = Backoff(backoff_kind, backoff_delay).delay_for(attempt)
                logger.warning(
                    "job_retry_scheduled",
                    job_id=task.request.id,
                    job_name=name,
                    attempt=attempt,
                    delay_seconds=countdown,
                    error=str(exc),
                )
                raise task.retry(exc=exc, countdown=countdown, max_retries=attempts - 1)

        self._tasks[name] = run

    def enqueue(self, name: str, payload: dict[str, Any], options: JobOptions | None = None) -> str:
        if name not in self._tasks:
            raise LookupError(f"No handler registered for job '{name}'")
        options = options or JobOptions()
        result = self._tasks[name].apply_async(
            kwargs={
                "payload": payload,
                "attempts": options.attempts,
                "backoff_kind": options.backoff.kind,
                "backoff_delay": options.backoff.delay,
            },
            ignore_result=options.remove_on_complete,
        )
        return result.id
