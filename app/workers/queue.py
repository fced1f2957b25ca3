# app/workers/queue.py

from typing import Any, Callable, Dict

from redis import Redis
from rq import Queue

from app.core.config import settings

_DEFAULT_QUEUE_NAME = "default"
SWEEP_QUEUE_NAME = "sweeps"
NOTIFICATION_QUEUE_NAME = "notifications"

_redis_conn: Redis | None = None


def get_redis_connection() -> Redis:
    global _redis_conn
    if _redis_conn is None:
        _redis_conn = Redis.from_url(settings.REDIS_URL)
    return _redis_conn


def get_queue(name: str = _DEFAULT_QUEUE_NAME) -> Queue:
    return Queue(name, connection=get_redis_connection())


def enqueue_job(
    func: Callable[..., Any],
    *args: Any,
    queue_name: str = _DEFAULT_QUEUE_NAME,
    **kwargs: Any,
) -> str:
    q = get_queue(queue_name)
    job = q.enqueue(func, *args, **kwargs)
    return job.id


def enqueue_sweep() -> str:
    from app.workers.tasks import sweep_deadlines_task

    return enqueue_job(sweep_deadlines_task, queue_name=SWEEP_QUEUE_NAME)


def enqueue_notification(recipient_id: int, event_type: str, payload: Dict[str, Any]) -> str:
    from app.workers.tasks import deliver_notification_task

    return enqueue_job(
        deliver_notification_task,
        recipient_id,
        event_type,
        payload,
        queue_name=NOTIFICATION_QUEUE_NAME,
    )
