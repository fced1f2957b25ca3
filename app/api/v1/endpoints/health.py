# app/api/v1/endpoints/health.py
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.workers.scheduler import get_scheduler

router = APIRouter(tags=["health"])


@router.get("/live")
def liveness_probe():
    return {"status": "ok"}


@router.get("/db")
def db_health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok"}


@router.get("/scheduler")
def scheduler_health():
    """Whether this process runs the periodic deadline sweep."""
    scheduler = get_scheduler()
    return {
        "enabled": settings.SCHEDULER_ENABLED,
        "running": scheduler.is_running,
        "mode": scheduler.mode,
        "interval_seconds": scheduler.interval_seconds,
    }
