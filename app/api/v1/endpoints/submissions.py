# app/api/v1/endpoints/submissions.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_clock, get_directory, get_notification_sink
from app.core.clock import Clock
from app.core.exceptions import ResourceNotFoundError
from app.db.session import get_db
from app.models.submission import SubmissionStatus
from app.schemas.submission import (
    SubmissionCreate,
    SubmissionPublic,
    SubmissionUpdate,
    SupervisorMarksPublic,
    SupervisorReview,
    SupervisorScoreIn,
)
from app.services import submission_service
from app.services.directory import Directory
from app.services.notifications import NotificationSink

router = APIRouter(tags=["submissions"])


@router.post(
    "/projects/{project_id}/submissions",
    response_model=SubmissionPublic,
    status_code=status.HTTP_201_CREATED,
)
def create_submission(
    project_id: int,
    obj_in: SubmissionCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_notification_sink),
):
    """
    Upload a new version of a document; it becomes the final version and
    waits for the supervisor.
    """
    sub = submission_service.create_submission(
        db, project_id=project_id, obj_in=obj_in, clock=clock, notifier=notifier
    )
    return submission_service.to_public(db, sub, clock)


@router.get("/projects/{project_id}/submissions", response_model=List[SubmissionPublic])
def list_project_submissions(
    project_id: int,
    document_type_id: int | None = None,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    subs = submission_service.list_submissions_for_project(
        db, project_id=project_id, document_type_id=document_type_id
    )
    return [submission_service.to_public(db, s, clock) for s in subs]


@router.get("/submissions/evaluation-queue", response_model=List[SubmissionPublic])
def list_evaluation_queue(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Submissions the committee can mark: locked or already in progress."""
    subs = submission_service.list_submissions_by_status(
        db,
        statuses=[SubmissionStatus.LOCKED_FOR_EVAL, SubmissionStatus.EVAL_IN_PROGRESS],
        skip=skip,
        limit=limit,
    )
    return [submission_service.to_public(db, s, clock) for s in subs]


@router.get("/submissions/{submission_id}", response_model=SubmissionPublic)
def get_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    sub = submission_service.get_submission_or_404(db, submission_id)
    return submission_service.to_public(db, sub, clock)


@router.patch("/submissions/{submission_id}", response_model=SubmissionPublic)
def update_submission(
    submission_id: int,
    obj_in: SubmissionUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    sub = submission_service.update_submission(db, submission_id=submission_id, obj_in=obj_in)
    return submission_service.to_public(db, sub, clock)


@router.post("/submissions/{submission_id}/review", response_model=SubmissionPublic)
def review_submission(
    submission_id: int,
    review: SupervisorReview,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_notification_sink),
    directory: Directory = Depends(get_directory),
):
    sub = submission_service.review_submission(
        db,
        submission_id=submission_id,
        review=review,
        clock=clock,
        notifier=notifier,
        directory=directory,
    )
    return submission_service.to_public(db, sub, clock)


@router.put("/submissions/{submission_id}/supervisor-marks", response_model=SupervisorMarksPublic)
def record_supervisor_score(
    submission_id: int,
    obj_in: SupervisorScoreIn,
    db: Session = Depends(get_db),
):
    return submission_service.record_supervisor_score(
        db,
        submission_id=submission_id,
        supervisor_id=obj_in.supervisor_id,
        score=obj_in.score,
        comments=obj_in.comments,
    )


@router.get("/submissions/{submission_id}/supervisor-marks", response_model=SupervisorMarksPublic)
def get_supervisor_marks(submission_id: int, db: Session = Depends(get_db)):
    marks = submission_service.get_supervisor_marks(db, submission_id)
    if marks is None:
        raise ResourceNotFoundError("SupervisorMarks", submission_id)
    return marks
