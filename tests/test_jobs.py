"""Tests for the job queue backends."""

from __future__ import annotations

import pytest
from celery import Celery
from celery.app.trace import build_tracer

from vendor_risk.services.jobs import Backoff, CeleryJobQueue, InMemoryJobQueue, JobOptions


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _flaky(failures: int, calls: list):
    def handler(payload):
        calls.append(payload)
        if len(calls) <= failures:
            raise RuntimeError(f"failure {len(calls)}")

    return handler


# ─── Backoff ─────────────────────────────────────────────────────────────────

class TestBackoff:
    """Retry delays."""

    def test_exponential_delays(self):
        """Delay doubles after each failure."""
        backoff = Backoff("exponential", 5.0)
        assert [backoff.delay_for(n) for n in (1, 2, 3)] == [5.0, 10.0, 20.0]

    def test_fixed_delay(self):
        """Fixed backoff never grows."""
        assert Backoff("fixed", 2.0).delay_for(4) == 2.0

    def test_default_options(self):
        """Defaults: three attempts, 5s exponential, keep failures only."""
        options = JobOptions()
        assert options.attempts == 3
        assert options.backoff == Backoff("exponential", 5.0)
        assert options.remove_on_complete is True
        assert options.remove_on_fail is False


# ─── In-memory queue ─────────────────────────────────────────────────────────

class TestInMemoryJobQueue:
    """FIFO delivery with retries."""

    def test_enqueue_requires_handler(self):
        """Jobs without a registered handler are refused."""
        with pytest.raises(LookupError):
            InMemoryJobQueue().enqueue("unknown", {})

    def test_delivers_in_order(self):
        """Jobs run first in, first out."""
        queue = InMemoryJobQueue()
        seen = []
        queue.register("echo", lambda payload: seen.append(payload["n"]))
        for n in range(3):
            queue.enqueue("echo", {"n": n})
        assert queue.run_pending() == 3
        assert seen == [0, 1, 2]
        assert queue.pending == []

    def test_completed_jobs_removed_by_default(self):
        """remove_on_complete drops finished jobs."""
        queue = InMemoryJobQueue()
        queue.register("noop", lambda payload: None)
        queue.enqueue("noop", {})
        queue.enqueue("noop", {}, JobOptions(remove_on_complete=False))
        queue.run_pending()
        assert len(queue.completed_jobs) == 1

    def test_retry_until_success(self):
        """A handler failing twice succeeds on the third attempt."""
        queue = InMemoryJobQueue()
        calls = []
        queue.register("flaky", _flaky(2, calls))
        queue.enqueue("flaky", {"id": 1})
        assert queue.run_pending() == 3
        assert len(calls) == 3
        assert queue.failed_jobs == []

    def test_exhausted_job_retained(self):
        """After the last attempt the job is kept with its error."""
        queue = InMemoryJobQueue()
        queue.register("broken", _flaky(99, []))
        queue.enqueue("broken", {}, JobOptions(attempts=2))
        assert queue.run_pending() == 2
        [job] = queue.failed_jobs
        assert job.state == "failed"
        assert job.failed_reason == "failure 2"

    def test_exhausted_job_dropped_when_requested(self):
        """remove_on_fail drops exhausted jobs."""
        queue = InMemoryJobQueue()
        queue.register("broken", _flaky(99, []))
        queue.enqueue("broken", {}, JobOptions(attempts=1, remove_on_fail=True))
        queue.run_pending()
        assert queue.failed_jobs == []

    def test_backoff_delays_respected(self):
        """Retries wait for their backoff when delays are honoured."""
        clock = FakeClock()
        queue = InMemoryJobQueue(clock=clock)
        calls = []
        queue.register("flaky", _flaky(2, calls))
        queue.enqueue("flaky", {})

        assert queue.run_pending(ignore_delays=False) == 1
        assert queue.run_pending(ignore_delays=False) == 0
        clock.now += 5.0
        assert queue.run_pending(ignore_delays=False) == 1
        clock.now += 9.0
        assert queue.run_pending(ignore_delays=False) == 0
        clock.now += 1.0
        assert queue.run_pending(ignore_delays=False) == 1
        assert len(calls) == 3

    def test_background_worker_start_stop(self):
        """The worker thread drains the queue and stops cleanly."""
        import threading

        queue = InMemoryJobQueue()
        done = threading.Event()
        queue.register("signal", lambda payload: done.set())
        queue.start(poll_interval=0.01)
        try:
            queue.enqueue("signal", {})
            assert done.wait(timeout=5)
        finally:
            queue.stop()

    def test_background_worker_honours_stop_predicate(self):
        """The worker exits once the shutdown predicate turns true."""
        import threading

        queue = InMemoryJobQueue()
        shutdown = threading.Event()
        queue.start(poll_interval=0.01, should_stop=shutdown.is_set)
        worker = queue._thread
        try:
            shutdown.set()
            worker.join(timeout=5)
            assert not worker.is_alive()
        finally:
            queue.stop()


# ─── Celery queue ────────────────────────────────────────────────────────────

@pytest.fixture
def eager_celery():
    app = Celery("vendor_risk_test", broker="memory://", backend="cache+memory://")
    app.conf.task_always_eager = True
    return app


class TestCeleryJobQueue:
    """Handlers as Celery tasks."""

    def test_registered_task_name(self, eager_celery):
        """The task is registered under the job name."""
        queue = CeleryJobQueue(eager_celery)
        queue.register("analyze-supplier", lambda payload: None)
        assert "analyze-supplier" in eager_celery.tasks

    def test_enqueue_runs_handler(self, eager_celery):
        """Eager mode runs the handler with the payload."""
        seen = []
        queue = CeleryJobQueue(eager_celery)
        queue.register("echo", seen.append)
        job_id = queue.enqueue("echo", {"supplierId": "s-1"})
        assert job_id
        assert seen == [{"supplierId": "s-1"}]

    def test_enqueue_requires_handler(self, eager_celery):
        """Unknown job names are refused."""
        with pytest.raises(LookupError):
            CeleryJobQueue(eager_celery).enqueue("unknown", {})

    def test_enqueue_passes_retry_policy(self, eager_celery, monkeypatch):
        """Attempts and backoff travel with the task call."""
        queue = CeleryJobQueue(eager_celery)
        queue.register("echo", lambda payload: None)
        captured = {}

        class Result:
            id = "task-1"

        def fake_apply_async(*args, **kwargs):
            captured.update(kwargs)
            return Result()

        monkeypatch.setattr(queue._tasks["echo"], "apply_async", fake_apply_async)
        assert queue.enqueue("echo", {"a": 1}, JobOptions(attempts=5, backoff=Backoff("exponential", 2.0))) == "task-1"
        assert captured["kwargs"] == {"payload": {"a": 1}, "attempts": 5, "backoff_kind": "exponential", "backoff_delay": 2.0}


# ─── Celery worker execution ─────────────────────────────────────────────────

@pytest.fixture
def worker_celery():
    """Non-eager app whose results land in an in-memory backend."""
    return Celery("vendor_risk_worker_test", broker="memory://", backend="cache+memory://")


def _trace(app: Celery, name: str, task_id: str, attempts: int, retries: int = 0, **request):
    """Run one delivery of ``name`` the way a worker would."""
    task = app.tasks[name]
    tracer = build_tracer(task.name, task, app=app, eager=False)
    kwargs = {"payload": {"supplierId": "s-1"}, "attempts": attempts, "backoff_kind": "exponential", "backoff_delay": 5.0}
    tracer(task_id, (), kwargs, {"id": task_id, "retries": retries, "delivery_info": {}, **request})


class TestCeleryWorkerExecution:
    """Retry scheduling and failure retention through the Celery tracer."""

    @staticmethod
    def _capture_retries(app: Celery, name: str, monkeypatch) -> list[dict]:
        scheduled: list[dict] = []

        class Result:
            id = "retry"

        def fake_apply_async(args=None, kwargs=None, **options):
            scheduled.append(options)
            return Result()

        monkeypatch.setattr(app.tasks[name], "apply_async", fake_apply_async)
        return scheduled

    def test_exhausted_failure_kept_when_results_ignored(self, worker_celery):
        """The last failed attempt is stored even for fire-and-forget jobs."""
        queue = CeleryJobQueue(worker_celery)
        queue.register("broken", _flaky(99, []))

        _trace(worker_celery, "broken", "job-1", attempts=1, ignore_result=True)

        assert worker_celery.backend.get_state("job-1") == "FAILURE"

    def test_exhausted_after_final_retry(self, worker_celery, monkeypatch):
        """A failure on the last allowed attempt is not retried again."""
        queue = CeleryJobQueue(worker_celery)
        calls = []
        queue.register("broken", _flaky(99, calls))
        scheduled = self._capture_retries(worker_celery, "broken", monkeypatch)

        _trace(worker_celery, "broken", "job-2", attempts=3, retries=2, ignore_result=True)

        assert len(calls) == 1
        assert scheduled == []
        assert worker_celery.backend.get_state("job-2") == "FAILURE"

    def test_first_failure_schedules_retry_with_base_delay(self, worker_celery, monkeypatch):
        """The first failure retries after the base backoff delay."""
        queue = CeleryJobQueue(worker_celery)
        calls = []
        queue.register("flaky", _flaky(1, calls))
        scheduled = self._capture_retries(worker_celery, "flaky", monkeypatch)

        _trace(worker_celery, "flaky", "job-3", attempts=3)

        assert calls == [{"supplierId": "s-1"}]
        assert len(scheduled) == 1
        assert scheduled[0]["countdown"] == 5.0
        assert scheduled[0]["retries"] == 1
        assert worker_celery.backend.get_state("job-3") == "RETRY"

    def test_second_failure_doubles_delay(self, worker_celery, monkeypatch):
        """Exponential backoff doubles the countdown per failed attempt."""
        queue = CeleryJobQueue(worker_celery)
        queue.register("flaky", _flaky(99, []))
        scheduled = self._capture_retries(worker_celery, "flaky", monkeypatch)

        _trace(worker_celery, "flaky", "job-4", attempts=3, retries=1)

        assert [options["countdown"] for options in scheduled] == [10.0]

    def test_success_after_retry(self, worker_celery):
        """A retried delivery that succeeds is recorded as a success."""
        queue = CeleryJobQueue(worker_celery)
        queue.register("steady", lambda payload: None)

        _trace(worker_celery, "steady", "job-5", attempts=3, retries=1)

        assert worker_celery.backend.get_state("job-5") == "SUCCESS"
