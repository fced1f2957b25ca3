# app/workers/scheduler.py
"""
Periodic deadline sweep.

A daemon thread wakes every SWEEP_INTERVAL_MINUTES and either runs the sweep
in-process or hands it to the RQ `sweeps` queue. The sweep itself is
idempotent, so overlapping ticks from several API processes are harmless.
"""

import logging
import threading
from typing import Callable, Optional

from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.db.session import SessionLocal
from app.services.deadline_sweep import sweep_passed_deadlines
from app.services.directory import SqlDirectory
from app.services.notifications import get_notifier

logger = logging.getLogger(__name__)

SWEEP_MODE_INLINE = "inline"
SWEEP_MODE_QUEUE = "queue"


class DeadlineSweepScheduler:
    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        mode: Optional[str] = None,
        session_factory: Callable = SessionLocal,
        clock: Clock = system_clock,
    ):
        if interval_seconds is None:
            interval_seconds = settings.SWEEP_INTERVAL_MINUTES * 60
        self.interval_seconds = interval_seconds
        self.mode = mode or settings.SWEEP_MODE
        self.session_factory = session_factory
        self.clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="deadline-sweep",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            f"Deadline sweep scheduler started (every {self.interval_seconds}s, mode={self.mode})"
        )

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout)
        if self._thread.is_alive():
            # still inside a tick; keep the reference so start() cannot spawn a second loop
            logger.warning(f"Deadline sweep thread did not stop within {timeout}s")
            return
        self._thread = None
        logger.info("Deadline sweep scheduler stopped")

    def run_once(self) -> int:
        """One sweep tick. Returns the number locked inline, 0 when queued."""
        if self.mode == SWEEP_MODE_QUEUE:
            from app.workers.queue import enqueue_sweep

            job_id = enqueue_sweep()
            logger.info(f"Enqueued deadline sweep job {job_id}")
            return 0

        db = self.session_factory()
        try:
            return sweep_passed_deadlines(
                db,
                clock=self.clock,
                notifier=get_notifier(),
                directory=SqlDirectory(db),
            )
        finally:
            db.close()

    def _loop(self) -> None:
        # first sweep right away so a restart does not wait a full interval
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Deadline sweep tick failed: {e}", exc_info=True)
            self._stop_event.wait(self.interval_seconds)


_scheduler: Optional[DeadlineSweepScheduler] = None


def get_scheduler() -> DeadlineSweepScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = DeadlineSweepScheduler()
    return _scheduler
