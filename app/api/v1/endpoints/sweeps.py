# app/api/v1/endpoints/sweeps.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_clock, get_directory, get_notification_sink
from app.core.clock import Clock
from app.core.config import settings
from app.db.session import get_db
from app.schemas.result import SweepResult
from app.services.deadline_sweep import sweep_passed_deadlines
from app.services.directory import Directory
from app.services.notifications import NotificationSink
from app.workers.queue import enqueue_sweep
from app.workers.scheduler import SWEEP_MODE_QUEUE

router = APIRouter(prefix="/sweeps", tags=["sweeps"])


@router.post("", response_model=SweepResult)
def trigger_sweep(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_notification_sink),
    directory: Directory = Depends(get_directory),
):
    """Run one deadline sweep now instead of waiting for the next tick."""
    if settings.SWEEP_MODE == SWEEP_MODE_QUEUE:
        enqueue_sweep()
        return SweepResult(locked=0, mode=SWEEP_MODE_QUEUE)

    locked = sweep_passed_deadlines(db, clock=clock, notifier=notifier, directory=directory)
    return SweepResult(locked=locked, mode=settings.SWEEP_MODE)
