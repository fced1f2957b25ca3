# app/services/submission_state.py
"""
Submission status state machine.

    PENDING_SUPERVISOR     -> REVISION_REQUESTED | APPROVED_BY_SUPERVISOR
    APPROVED_BY_SUPERVISOR -> LOCKED_FOR_EVAL      (deadline sweep only)
    LOCKED_FOR_EVAL        -> EVAL_IN_PROGRESS     (first evaluator mark)
    EVAL_IN_PROGRESS       -> EVAL_FINALIZED       (all assigned evaluators final)

A resubmission after REVISION_REQUESTED is a new version starting in
PENDING_SUPERVISOR, not a transition of the old row.

Every status change is a single compare-and-set UPDATE guarded on the status
the caller read, so a concurrent writer working from a stale status loses.
"""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.exceptions import BusinessRuleError
from app.models.submission import DocumentSubmission, SubmissionStatus

logger = logging.getLogger(__name__)

S = SubmissionStatus

ALLOWED_TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    S.PENDING_SUPERVISOR: frozenset({S.REVISION_REQUESTED, S.APPROVED_BY_SUPERVISOR}),
    S.REVISION_REQUESTED: frozenset(),
    S.APPROVED_BY_SUPERVISOR: frozenset({S.LOCKED_FOR_EVAL}),
    S.LOCKED_FOR_EVAL: frozenset({S.EVAL_IN_PROGRESS}),
    S.EVAL_IN_PROGRESS: frozenset({S.EVAL_FINALIZED}),
    S.EVAL_FINALIZED: frozenset(),
}

LOCKED_STATES = frozenset({S.LOCKED_FOR_EVAL, S.EVAL_IN_PROGRESS, S.EVAL_FINALIZED})
EDITABLE_STATES = frozenset({S.PENDING_SUPERVISOR, S.REVISION_REQUESTED})
EVALUABLE_STATES = frozenset({S.LOCKED_FOR_EVAL, S.EVAL_IN_PROGRESS})

# targets reached by supervisor actions; losing these to a lock reports SUBMISSION_LOCKED
_SUPERVISOR_TARGETS = frozenset({S.REVISION_REQUESTED, S.APPROVED_BY_SUPERVISOR})


def status_of(submission: DocumentSubmission) -> SubmissionStatus:
    return SubmissionStatus(submission.status)


def can_transition(current: SubmissionStatus, target: SubmissionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[SubmissionStatus(current)]


def is_locked(status) -> bool:
    return SubmissionStatus(status) in LOCKED_STATES


def is_editable(status) -> bool:
    return SubmissionStatus(status) in EDITABLE_STATES


def ensure_mutable(submission: DocumentSubmission) -> None:
    """Reject upload/edit/review on anything at or past LOCKED_FOR_EVAL."""
    if is_locked(submission.status):
        raise BusinessRuleError(
            "SUBMISSION_LOCKED",
            f"Submission {submission.id} is locked for evaluation (status {submission.status})",
            details={"submission_id": submission.id, "status": submission.status},
        )


def _invalid(submission: DocumentSubmission, target: SubmissionStatus) -> BusinessRuleError:
    return BusinessRuleError(
        "INVALID_TRANSITION",
        f"Cannot move submission {submission.id} from {submission.status} to {target.value}",
        details={
            "submission_id": submission.id,
            "from": submission.status,
            "to": target.value,
        },
    )


def ensure_can_transition(submission: DocumentSubmission, target: SubmissionStatus) -> None:
    if not can_transition(status_of(submission), target):
        if target in _SUPERVISOR_TARGETS:
            ensure_mutable(submission)
        raise _invalid(submission, target)


def transition(
    db: Session,
    submission: DocumentSubmission,
    target: SubmissionStatus,
    **values,
) -> DocumentSubmission:
    """
    Atomically move `submission` to `target`, writing extra column `values`
    in the same statement. Does not commit.

    Raises BusinessRuleError INVALID_TRANSITION for an illegal edge, or when
    the row changed underneath us; SUBMISSION_LOCKED when a supervisor action
    lost the race against the deadline lock.
    """
    current = status_of(submission)
    ensure_can_transition(submission, target)

    stmt = (
        update(DocumentSubmission)
        .where(
            DocumentSubmission.id == submission.id,
            DocumentSubmission.status == current.value,
        )
        .values(
            status=target.value,
            row_version=DocumentSubmission.row_version + 1,
            **values,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)

    db.refresh(submission)
    if result.rowcount != 1:
        logger.info(
            f"Stale transition on submission {submission.id}: "
            f"expected {current.value}, found {submission.status}"
        )
        if target in _SUPERVISOR_TARGETS:
            ensure_mutable(submission)
        raise _invalid(submission, target)

    logger.info(f"Submission {submission.id}: {current.value} -> {target.value}")
    return submission


def lock_for_evaluation(db: Session, submission: DocumentSubmission, now: datetime) -> bool:
    """
    APPROVED_BY_SUPERVISOR -> LOCKED_FOR_EVAL. Does not commit.

    Returns True when this call performed the lock and False when the
    submission was already locked (or further along), which is a no-op.
    """
    if is_locked(submission.status):
        return False

    try:
        transition(db, submission, S.LOCKED_FOR_EVAL, locked_at=now)
    except BusinessRuleError:
        # another sweep got there first
        if is_locked(submission.status):
            return False
        raise
    return True
