# app/api/v1/endpoints/results.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_clock, get_directory, get_notification_sink
from app.core.clock import Clock
from app.core.exceptions import ResourceNotFoundError
from app.db.session import get_db
from app.schemas.result import ComputeRequest, FinalResultPublic, ReleaseRequest
from app.services import final_result_service
from app.services.directory import Directory
from app.services.notifications import NotificationSink

router = APIRouter(prefix="/projects/{project_id}/result", tags=["results"])


@router.post("/compute", response_model=FinalResultPublic, status_code=status.HTTP_201_CREATED)
def compute_final_result(
    project_id: int,
    obj_in: ComputeRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return final_result_service.compute_final_result(
        db, project_id, computed_by=obj_in.computed_by, clock=clock
    )


@router.post("/release", response_model=FinalResultPublic)
def release_final_result(
    project_id: int,
    obj_in: ReleaseRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_notification_sink),
    directory: Directory = Depends(get_directory),
):
    return final_result_service.release_final_result(
        db,
        project_id,
        released_by=obj_in.released_by,
        clock=clock,
        notifier=notifier,
        directory=directory,
    )


@router.get("", response_model=FinalResultPublic)
def get_final_result(project_id: int, db: Session = Depends(get_db)):
    """Committee view, released or not."""
    result = final_result_service.get_final_result(db, project_id)
    if result is None:
        raise ResourceNotFoundError("FinalResult", project_id)
    return result


@router.get("/released", response_model=FinalResultPublic)
def get_released_result(project_id: int, db: Session = Depends(get_db)):
    return final_result_service.get_released_result(db, project_id)
