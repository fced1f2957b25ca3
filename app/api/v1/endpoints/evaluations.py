# app/api/v1/endpoints/evaluations.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_clock, get_directory, get_notification_sink
from app.core.clock import Clock
from app.db.session import get_db
from app.schemas.evaluation import (
    EvaluationMarkPublic,
    EvaluationSummary,
    FinalizeIn,
    MarkIn,
    RequiredEvaluatorsIn,
)
from app.services import evaluation_service
from app.services.directory import Directory
from app.services.notifications import NotificationSink

router = APIRouter(prefix="/submissions/{submission_id}/evaluations", tags=["evaluations"])


@router.put("/marks", response_model=EvaluationMarkPublic)
def submit_mark(
    submission_id: int,
    obj_in: MarkIn,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_notification_sink),
    directory: Directory = Depends(get_directory),
):
    return evaluation_service.submit_mark(
        db,
        submission_id=submission_id,
        evaluator_id=obj_in.evaluator_id,
        score=obj_in.score,
        comments=obj_in.comments,
        clock=clock,
        notifier=notifier,
        directory=directory,
    )


@router.post("/finalize", response_model=EvaluationMarkPublic)
def finalize_mark(
    submission_id: int,
    obj_in: FinalizeIn,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_notification_sink),
    directory: Directory = Depends(get_directory),
):
    required = obj_in.required_evaluator_ids
    if required is None:
        required = directory.evaluation_committee_ids()
    return evaluation_service.finalize_mark(
        db,
        submission_id=submission_id,
        evaluator_id=obj_in.evaluator_id,
        required_evaluator_ids=required,
        clock=clock,
        notifier=notifier,
        directory=directory,
    )


@router.post("/refresh")
def refresh_finalization(
    submission_id: int,
    obj_in: RequiredEvaluatorsIn,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_notification_sink),
    directory: Directory = Depends(get_directory),
):
    """Re-check the gate after committee membership changed."""
    required = obj_in.required_evaluator_ids
    if required is None:
        required = directory.evaluation_committee_ids()
    finalized = evaluation_service.refresh_finalization(
        db,
        submission_id=submission_id,
        required_evaluator_ids=required,
        clock=clock,
        notifier=notifier,
        directory=directory,
    )
    return {"submission_id": submission_id, "finalized": finalized}


@router.get("/summary", response_model=EvaluationSummary)
def get_summary(
    submission_id: int,
    db: Session = Depends(get_db),
    directory: Directory = Depends(get_directory),
):
    return evaluation_service.get_summary(
        db, submission_id, required_evaluator_ids=directory.evaluation_committee_ids()
    )
