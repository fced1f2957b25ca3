# app/api/v1/endpoints/deadlines.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_clock, get_directory, get_notification_sink
from app.core.clock import Clock
from app.db.session import get_db
from app.schemas.deadline import (
    DeadlineBatchCreate,
    DeadlineBatchPublic,
    ProjectBatchAssign,
    ProjectDeadlineView,
)
from app.services import deadline_service
from app.services.directory import Directory
from app.services.notifications import NotificationSink

router = APIRouter(tags=["deadlines"])


@router.post(
    "/deadline-batches",
    response_model=DeadlineBatchPublic,
    status_code=status.HTTP_201_CREATED,
)
def create_batch(obj_in: DeadlineBatchCreate, db: Session = Depends(get_db)):
    """
    Create a batch together with all of its deadlines.

    Rejected as a whole when any two consecutive deadlines are closer than
    MIN_DAYS_BETWEEN_DEADLINES.
    """
    return deadline_service.create_batch(db, obj_in=obj_in)


@router.get("/deadline-batches", response_model=List[DeadlineBatchPublic])
def list_batches(
    active_only: bool = False,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return deadline_service.list_batches(db, active_only=active_only, skip=skip, limit=limit)


@router.get("/deadline-batches/{batch_id}", response_model=DeadlineBatchPublic)
def get_batch(batch_id: int, db: Session = Depends(get_db)):
    return deadline_service.get_batch_or_404(db, batch_id)


@router.post("/deadline-batches/{batch_id}/deactivate", response_model=DeadlineBatchPublic)
def deactivate_batch(batch_id: int, db: Session = Depends(get_db)):
    return deadline_service.deactivate_batch(db, batch_id=batch_id)


@router.put("/projects/{project_id}/deadline-batch")
def assign_project_batch(
    project_id: int,
    obj_in: ProjectBatchAssign,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_notification_sink),
    directory: Directory = Depends(get_directory),
):
    project = deadline_service.assign_project_batch(
        db,
        project_id=project_id,
        batch_id=obj_in.batch_id,
        at=obj_in.at,
        clock=clock,
        notifier=notifier,
        directory=directory,
    )
    return {"project_id": project.id, "deadline_batch_id": project.deadline_batch_id}


@router.get("/projects/{project_id}/deadlines", response_model=List[ProjectDeadlineView])
def get_project_deadlines(
    project_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return deadline_service.get_project_deadlines(db, project_id=project_id, clock=clock)
