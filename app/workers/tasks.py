"""
Background tasks for the RQ worker.

Deadline sweeps and notification delivery run here when the API process
hands them off instead of doing the work inline.
"""

import logging
from typing import Any, Dict

from app.db.session import SessionLocal
from app.services.deadline_sweep import sweep_passed_deadlines
from app.services.directory import SqlDirectory
from app.services.notifications import LoggingNotificationSink

logger = logging.getLogger(__name__)


def sweep_deadlines_task() -> dict:
    """
    Worker task that locks every approved submission whose deadline passed.

    Runs with its own session; notifications go to the log sink because
    queueing them from inside a worker job would only bounce them back here.

    Returns:
        Dictionary with the number of submissions locked
    """
    db = SessionLocal()
    try:
        logger.info("Starting deadline sweep task")
        locked = sweep_passed_deadlines(
            db,
            notifier=LoggingNotificationSink(),
            directory=SqlDirectory(db),
        )
        logger.info(f"Completed deadline sweep task: {locked} locked")
        return {
            "status": "success",
            "locked": locked,
            "message": f"Locked {locked} submissions for evaluation",
        }

    except Exception as e:
        logger.error(f"Unexpected error during deadline sweep task: {e}", exc_info=True)
        return {
            "status": "error",
            "locked": 0,
            "error": str(e),
            "message": "Unexpected error during deadline sweep",
        }

    finally:
        db.close()


def deliver_notification_task(recipient_id: int, event_type: str, payload: Dict[str, Any]) -> dict:
    """
    Hand one notification to the delivery channel.

    Delivery itself (in-app inbox, e-mail) is owned by the notification
    service; this task records the hand-off.
    """
    try:
        LoggingNotificationSink().notify(recipient_id, event_type, payload)
        return {
            "status": "success",
            "recipient_id": recipient_id,
            "event_type": event_type,
        }
    except Exception as e:
        logger.error(
            f"Delivering {event_type} to {recipient_id} failed: {e}",
            exc_info=True,
        )
        return {
            "status": "error",
            "recipient_id": recipient_id,
            "event_type": event_type,
            "error": str(e),
        }
