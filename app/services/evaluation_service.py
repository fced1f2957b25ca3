# app/services/evaluation_service.py
"""
Committee marks for locked submissions.

Each evaluator holds one mark per submission; a mark can be edited until the
evaluator finalizes it. The submission reaches EVAL_FINALIZED once every
required evaluator has a final mark, and the committee average is frozen on
the submission at that moment.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.clock import Clock, system_clock
from app.core.exceptions import BusinessRuleError, ResourceNotFoundError
from app.models.submission import DocumentSubmission, EvaluationMarks, SubmissionStatus
from app.schemas.evaluation import EvaluationMarkPublic, EvaluationSummary
from app.services import submission_state
from app.services.directory import Directory
from app.services.notifications import (
    NotificationSink,
    NotificationType,
    notify_many,
    notify_safely,
)
from app.services.score_weighting import mean4, validate_score
from app.services.submission_service import get_submission_for_update, get_submission_or_404

logger = logging.getLogger(__name__)


def committee_average(scores: Iterable) -> Optional[Decimal]:
    return mean4(scores)


def all_required_finalized(marks: Iterable[EvaluationMarks], required: Iterable[int]) -> bool:
    """
    True when every required evaluator has a final mark.

    An empty required set is never complete; marks from evaluators outside
    the set do not count towards it.
    """
    required_ids = set(required or ())
    if not required_ids:
        return False
    finalized_ids = {m.evaluator_id for m in marks if m.is_final}
    return required_ids <= finalized_ids


def list_marks(db: Session, submission_id: int) -> List[EvaluationMarks]:
    return (
        db.query(EvaluationMarks)
        .filter(EvaluationMarks.submission_id == submission_id)
        .order_by(EvaluationMarks.evaluator_id.asc())
        .all()
    )


def get_mark(db: Session, submission_id: int, evaluator_id: int) -> Optional[EvaluationMarks]:
    return (
        db.query(EvaluationMarks)
        .filter(
            EvaluationMarks.submission_id == submission_id,
            EvaluationMarks.evaluator_id == evaluator_id,
        )
        .one_or_none()
    )


def _finalize_if_complete(
    db: Session,
    submission: DocumentSubmission,
    required_evaluator_ids: Iterable[int],
    now,
) -> bool:
    """EVAL_IN_PROGRESS -> EVAL_FINALIZED when the gate holds. Does not commit."""
    if submission.status != SubmissionStatus.EVAL_IN_PROGRESS.value:
        return False

    marks = list_marks(db, submission.id)
    if not all_required_finalized(marks, required_evaluator_ids):
        return False

    average = committee_average(m.score for m in marks if m.is_final)
    submission_state.transition(
        db,
        submission,
        SubmissionStatus.EVAL_FINALIZED,
        committee_avg_score=average,
        eval_finalized_at=now,
    )
    logger.info(f"Evaluation finalized for submission {submission.id}: committee_avg={average}")
    return True


def _notify_finalized(
    submission: DocumentSubmission,
    notifier: Optional[NotificationSink],
    directory: Optional[Directory],
) -> None:
    if notifier is None or directory is None:
        return
    notify_many(
        notifier,
        directory.group_member_ids(submission.project_id),
        NotificationType.EVALUATION_FINALIZED,
        {
            "project_id": submission.project_id,
            "submission_id": submission.id,
            "document_type_id": submission.document_type_id,
        },
    )


def submit_mark(
    db: Session,
    *,
    submission_id: int,
    evaluator_id: int,
    score,
    comments: Optional[str] = None,
    clock: Clock = system_clock,
    notifier: Optional[NotificationSink] = None,
    directory: Optional[Directory] = None,
) -> EvaluationMarks:
    submission = get_submission_for_update(db, submission_id)
    if submission_state.status_of(submission) not in submission_state.EVALUABLE_STATES:
        raise BusinessRuleError(
            "NOT_LOCKED",
            f"Submission {submission_id} is not open for evaluation (status {submission.status})",
            details={"submission_id": submission_id, "status": submission.status},
        )

    value = validate_score(score)

    mark = get_mark(db, submission_id, evaluator_id)
    if mark is not None and mark.is_final:
        raise BusinessRuleError(
            "EVALUATION_FINALIZED",
            f"Evaluator {evaluator_id} has already finalized marks for submission {submission_id}",
        )

    if mark is None:
        mark = EvaluationMarks(
            submission_id=submission_id,
            evaluator_id=evaluator_id,
            score=value,
            comments=comments,
            is_final=False,
        )
    else:
        mark.score = value
        mark.comments = comments
    db.add(mark)

    started = False
    if submission.status == SubmissionStatus.LOCKED_FOR_EVAL.value:
        submission_state.transition(db, submission, SubmissionStatus.EVAL_IN_PROGRESS)
        started = True

    db.commit()
    db.refresh(mark)
    logger.info(
        f"Evaluator {evaluator_id} marked submission {submission_id}: score={value}"
    )

    if started and notifier is not None and directory is not None:
        notify_safely(
            notifier,
            directory.group_leader_id(submission.project_id),
            NotificationType.EVALUATION_STARTED,
            {
                "project_id": submission.project_id,
                "submission_id": submission.id,
                "document_type_id": submission.document_type_id,
            },
        )
    return mark


def finalize_mark(
    db: Session,
    *,
    submission_id: int,
    evaluator_id: int,
    required_evaluator_ids: Iterable[int],
    clock: Clock = system_clock,
    notifier: Optional[NotificationSink] = None,
    directory: Optional[Directory] = None,
) -> EvaluationMarks:
    """
    Make one evaluator's mark immutable, then re-check the finalization gate
    with the mark already written.
    """
    submission = get_submission_for_update(db, submission_id)
    if submission.status == SubmissionStatus.EVAL_FINALIZED.value:
        # the committee average is frozen; a late final mark would not be part of it
        raise BusinessRuleError(
            "EVALUATION_CLOSED",
            f"Evaluation of submission {submission_id} is already finalized",
            details={"submission_id": submission_id},
        )
    if submission_state.status_of(submission) not in submission_state.EVALUABLE_STATES:
        raise BusinessRuleError(
            "NOT_LOCKED",
            f"Submission {submission_id} is not open for evaluation (status {submission.status})",
            details={"submission_id": submission_id, "status": submission.status},
        )

    mark = get_mark(db, submission_id, evaluator_id)
    if mark is None:
        raise ResourceNotFoundError("EvaluationMark", f"{submission_id}/{evaluator_id}")
    if mark.is_final:
        raise BusinessRuleError(
            "ALREADY_FINALIZED",
            f"Evaluator {evaluator_id} has already finalized marks for submission {submission_id}",
        )

    now = clock.now()
    mark.is_final = True
    mark.finalized_at = now
    db.add(mark)
    db.flush()

    finalized = _finalize_if_complete(db, submission, required_evaluator_ids, now)
    db.commit()
    db.refresh(mark)
    logger.info(f"Evaluator {evaluator_id} finalized marks for submission {submission_id}")

    if finalized:
        _notify_finalized(submission, notifier, directory)
    return mark


def refresh_finalization(
    db: Session,
    *,
    submission_id: int,
    required_evaluator_ids: Iterable[int],
    clock: Clock = system_clock,
    notifier: Optional[NotificationSink] = None,
    directory: Optional[Directory] = None,
) -> bool:
    """Re-run the gate after the required evaluator set changed."""
    submission = get_submission_for_update(db, submission_id)
    finalized = _finalize_if_complete(db, submission, required_evaluator_ids, clock.now())
    if finalized:
        db.commit()
        _notify_finalized(submission, notifier, directory)
    else:
        db.rollback()
    return finalized


def get_summary(
    db: Session,
    submission_id: int,
    required_evaluator_ids: Optional[Iterable[int]] = None,
) -> EvaluationSummary:
    submission = get_submission_or_404(db, submission_id)
    marks = list_marks(db, submission_id)
    finalized = [m for m in marks if m.is_final]

    if required_evaluator_ids is not None:
        all_finalized = all_required_finalized(marks, required_evaluator_ids)
    else:
        all_finalized = bool(marks) and len(finalized) == len(marks)

    return EvaluationSummary(
        submission_id=submission.id,
        submission_status=submission.status,
        total_marks=len(marks),
        finalized_count=len(finalized),
        average_score=committee_average(m.score for m in finalized),
        all_finalized=all_finalized,
        marks=[EvaluationMarkPublic.model_validate(m) for m in marks],
    )
