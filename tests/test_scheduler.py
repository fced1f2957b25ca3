import threading
from datetime import timedelta

from app.models.submission import SubmissionStatus as S
from app.workers import scheduler as scheduler_module
from app.workers import tasks
from app.workers.scheduler import DeadlineSweepScheduler
from tests.conftest import T0, FixedClock


class TestDeadlineSweepScheduler:
    def test_run_once_inline(self, db_session, session_factory, doc_types, make_submission):
        sub = make_submission(doc_types["proposal"], status=S.APPROVED_BY_SUPERVISOR)
        sched = DeadlineSweepScheduler(
            interval_seconds=60,
            mode="inline",
            session_factory=session_factory,
            clock=FixedClock(T0 + timedelta(days=11)),
        )

        assert sched.run_once() == 1
        db_session.refresh(sub)
        assert sub.status == S.LOCKED_FOR_EVAL.value

    def test_run_once_queue_mode_enqueues(self, monkeypatch):
        enqueued = []
        monkeypatch.setattr(
            "app.workers.queue.enqueue_sweep", lambda: enqueued.append(1) or "job-1"
        )
        sched = DeadlineSweepScheduler(interval_seconds=60, mode="queue")

        assert sched.run_once() == 0
        assert enqueued == [1]

    def test_start_stop(self, monkeypatch):
        ticked = threading.Event()

        def fake_run_once(self):
            ticked.set()
            return 0

        monkeypatch.setattr(DeadlineSweepScheduler, "run_once", fake_run_once)
        sched = DeadlineSweepScheduler(interval_seconds=3600, mode="inline")

        sched.start()
        sched.start()  # second start is a no-op
        assert ticked.wait(2)
        assert sched.is_running

        sched.stop(timeout=2)
        assert not sched.is_running

    def test_tick_failure_keeps_loop_alive(self, monkeypatch):
        calls = []
        second_tick = threading.Event()

        def flaky_run_once(self):
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("redis unavailable")
            second_tick.set()
            return 0

        monkeypatch.setattr(DeadlineSweepScheduler, "run_once", flaky_run_once)
        sched = DeadlineSweepScheduler(interval_seconds=0.01, mode="inline")

        sched.start()
        try:
            assert second_tick.wait(2)
        finally:
            sched.stop(timeout=2)

    def test_stop_timeout_does_not_allow_second_loop(self, monkeypatch):
        entered = threading.Event()
        release = threading.Event()

        def slow_run_once(self):
            entered.set()
            release.wait(5)
            return 0

        monkeypatch.setattr(DeadlineSweepScheduler, "run_once", slow_run_once)
        sched = DeadlineSweepScheduler(interval_seconds=3600, mode="inline")

        sched.start()
        assert entered.wait(2)
        first_thread = sched._thread

        sched.stop(timeout=0.05)
        assert sched.is_running

        sched.start()
        assert sched._thread is first_thread
        sweep_threads = [t for t in threading.enumerate() if t.name == "deadline-sweep"]
        assert len(sweep_threads) == 1

        release.set()
        sched.stop(timeout=2)
        assert not sched.is_running

    def test_get_scheduler_is_shared(self, monkeypatch):
        monkeypatch.setattr(scheduler_module, "_scheduler", None)
        assert scheduler_module.get_scheduler() is scheduler_module.get_scheduler()


class TestTasks:
    def test_sweep_task_reports_count(self, session_factory, doc_types, make_submission,
                                      monkeypatch):
        make_submission(doc_types["proposal"], status=S.APPROVED_BY_SUPERVISOR)
        monkeypatch.setattr(tasks, "SessionLocal", session_factory)
        monkeypatch.setattr(
            "app.core.clock.SystemClock.now", lambda self: T0 + timedelta(days=11)
        )

        result = tasks.sweep_deadlines_task()

        assert result["status"] == "success"
        assert result["locked"] == 1

    def test_sweep_task_reports_errors(self, session_factory, monkeypatch):
        def broken_sweep(db, **kwargs):
            raise RuntimeError("no database")

        monkeypatch.setattr(tasks, "SessionLocal", session_factory)
        monkeypatch.setattr(tasks, "sweep_passed_deadlines", broken_sweep)

        result = tasks.sweep_deadlines_task()

        assert result["status"] == "error"
        assert "no database" in result["error"]

    def test_deliver_notification(self):
        result = tasks.deliver_notification_task(7, "RESULT_RELEASED", {"project_id": 1})
        assert result == {
            "status": "success",
            "recipient_id": 7,
            "event_type": "RESULT_RELEASED",
        }
