# app/services/notifications.py
"""
Fire-and-forget notification sink.

Delivery (in-app, e-mail) belongs to an external service. The core only
requests notifications, after its own transaction has committed, and never
lets a sink failure turn into a transition failure.
"""

import enum
import logging
from typing import Any, Dict, Iterable, Optional, Protocol

from app.core.config import settings

logger = logging.getLogger(__name__)


class NotificationType(str, enum.Enum):
    SUBMISSION_UPLOADED = "SUBMISSION_UPLOADED"
    SUBMISSION_REVISION_REQUESTED = "SUBMISSION_REVISION_REQUESTED"
    SUBMISSION_APPROVED = "SUBMISSION_APPROVED"
    SUBMISSION_LOCKED = "SUBMISSION_LOCKED"
    EVALUATION_STARTED = "EVALUATION_STARTED"
    EVALUATION_FINALIZED = "EVALUATION_FINALIZED"
    RESULT_RELEASED = "RESULT_RELEASED"
    DEADLINE_SET = "DEADLINE_SET"
    DEADLINE_MISSED = "DEADLINE_MISSED"


class NotificationSink(Protocol):
    def notify(self, recipient_id: int, event_type: str, payload: Dict[str, Any]) -> None: ...


class LoggingNotificationSink:
    """Default sink: records the request in the log and nothing else."""

    def notify(self, recipient_id: int, event_type: str, payload: Dict[str, Any]) -> None:
        logger.info(f"notify recipient={recipient_id} event={event_type} payload={payload}")


class QueueNotificationSink:
    """Hands each notification to the RQ `notifications` queue."""

    def notify(self, recipient_id: int, event_type: str, payload: Dict[str, Any]) -> None:
        from app.workers.queue import enqueue_notification

        job_id = enqueue_notification(recipient_id, event_type, payload)
        logger.debug(f"Enqueued notification job {job_id} for recipient {recipient_id}")


_sink: Optional[NotificationSink] = None


def get_notifier() -> NotificationSink:
    global _sink
    if _sink is None:
        if settings.NOTIFICATION_BACKEND == "queue":
            _sink = QueueNotificationSink()
        else:
            _sink = LoggingNotificationSink()
    return _sink


def notify_safely(
    sink: NotificationSink,
    recipient_id: Optional[int],
    event_type: NotificationType,
    payload: Dict[str, Any],
) -> None:
    if recipient_id is None:
        return
    try:
        sink.notify(recipient_id, event_type.value, payload)
    except Exception as e:
        logger.error(
            f"Notification {event_type.value} to {recipient_id} failed: {e}",
            exc_info=True,
        )


def notify_many(
    sink: NotificationSink,
    recipient_ids: Iterable[int],
    event_type: NotificationType,
    payload: Dict[str, Any],
) -> None:
    for recipient_id in recipient_ids:
        notify_safely(sink, recipient_id, event_type, payload)
