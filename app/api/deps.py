# app/api/deps.py
from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.clock import Clock, system_clock
from app.db.session import get_db
from app.services.directory import Directory, SqlDirectory
from app.services.notifications import NotificationSink, get_notifier


def get_clock() -> Clock:
    return system_clock


def get_notification_sink() -> NotificationSink:
    return get_notifier()


def get_directory(db: Session = Depends(get_db)) -> Directory:
    return SqlDirectory(db)
