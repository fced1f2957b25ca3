# app/services/submission_service.py
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock, ensure_utc, system_clock
from app.core.exceptions import (
    BusinessRuleError,
    ConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from app.models.document_type import DocumentType
from app.models.final_result import FinalResult
from app.models.project import Project
from app.models.submission import DocumentSubmission, SubmissionStatus, SupervisorMarks
from app.schemas.submission import (
    SubmissionCreate,
    SubmissionPublic,
    SubmissionUpdate,
    SupervisorReview,
)
from app.services import submission_state
from app.services.deadline_service import deadline_has_passed, get_deadline_for
from app.services.directory import Directory
from app.services.notifications import (
    NotificationSink,
    NotificationType,
    notify_many,
    notify_safely,
)
from app.services.score_weighting import validate_score

logger = logging.getLogger(__name__)

# statuses in which a supervisor score may be recorded after approval
SCORABLE_STATES = frozenset({
    SubmissionStatus.APPROVED_BY_SUPERVISOR,
    SubmissionStatus.LOCKED_FOR_EVAL,
    SubmissionStatus.EVAL_IN_PROGRESS,
    SubmissionStatus.EVAL_FINALIZED,
})


def get_submission(db: Session, submission_id: int) -> Optional[DocumentSubmission]:
    return db.get(DocumentSubmission, submission_id)


def get_submission_or_404(db: Session, submission_id: int) -> DocumentSubmission:
    submission = get_submission(db, submission_id)
    if submission is None:
        raise ResourceNotFoundError("Submission", submission_id)
    return submission


def get_submission_for_update(db: Session, submission_id: int) -> DocumentSubmission:
    """Re-read the submission under a row lock (no-op on SQLite)."""
    submission = (
        db.query(DocumentSubmission)
        .filter(DocumentSubmission.id == submission_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if submission is None:
        raise ResourceNotFoundError("Submission", submission_id)
    return submission


def get_latest_submission(
    db: Session,
    project_id: int,
    document_type_id: int,
) -> Optional[DocumentSubmission]:
    return (
        db.query(DocumentSubmission)
        .filter(
            DocumentSubmission.project_id == project_id,
            DocumentSubmission.document_type_id == document_type_id,
        )
        .order_by(DocumentSubmission.version.desc())
        .first()
    )


def get_final_submission(
    db: Session,
    project_id: int,
    document_type_id: int,
) -> Optional[DocumentSubmission]:
    """The single version currently eligible for evaluation, if any."""
    return (
        db.query(DocumentSubmission)
        .filter(
            DocumentSubmission.project_id == project_id,
            DocumentSubmission.document_type_id == document_type_id,
            DocumentSubmission.is_final.is_(True),
        )
        .one_or_none()
    )


def list_submissions_for_project(
    db: Session,
    *,
    project_id: int,
    document_type_id: Optional[int] = None,
) -> List[DocumentSubmission]:
    query = db.query(DocumentSubmission).filter(DocumentSubmission.project_id == project_id)
    if document_type_id is not None:
        query = query.filter(DocumentSubmission.document_type_id == document_type_id)
    return query.order_by(
        DocumentSubmission.document_type_id.asc(),
        DocumentSubmission.version.desc(),
    ).all()


def list_submissions_by_status(
    db: Session,
    *,
    statuses: List[SubmissionStatus],
    skip: int = 0,
    limit: int = 100,
) -> List[DocumentSubmission]:
    """Evaluation committee queue: e.g. LOCKED_FOR_EVAL + EVAL_IN_PROGRESS."""
    return (
        db.query(DocumentSubmission)
        .filter(DocumentSubmission.status.in_([s.value for s in statuses]))
        .order_by(DocumentSubmission.locked_at.asc(), DocumentSubmission.id.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def create_submission(
    db: Session,
    *,
    project_id: int,
    obj_in: SubmissionCreate,
    clock: Clock = system_clock,
    notifier: Optional[NotificationSink] = None,
) -> DocumentSubmission:
    """
    Upload a new version for (project, document type).

    The new version starts in PENDING_SUPERVISOR and becomes the final
    version; the previous final version loses is_final in the same commit.
    Allowed only while the group's latest version is still editable.
    """
    project = (
        db.query(Project)
        .filter(Project.id == project_id)
        .with_for_update()
        .one_or_none()
    )
    if project is None:
        raise ResourceNotFoundError("Project", project_id)

    doc_type = db.get(DocumentType, obj_in.document_type_id)
    if doc_type is None:
        raise ResourceNotFoundError("DocumentType", obj_in.document_type_id)
    if not doc_type.is_active:
        raise BusinessRuleError(
            "DOC_TYPE_INACTIVE", f"Document type '{doc_type.code}' is not active"
        )

    latest = get_latest_submission(db, project_id, doc_type.id)
    if latest is not None:
        submission_state.ensure_mutable(latest)
        if latest.status == SubmissionStatus.APPROVED_BY_SUPERVISOR.value:
            raise BusinessRuleError(
                "SUBMISSION_APPROVED",
                f"The {doc_type.title} submission is already approved by the supervisor",
                details={"submission_id": latest.id},
            )

    max_version = (
        db.query(func.max(DocumentSubmission.version))
        .filter(
            DocumentSubmission.project_id == project_id,
            DocumentSubmission.document_type_id == doc_type.id,
        )
        .scalar()
    )
    next_version = (max_version or 0) + 1
    now = clock.now()

    try:
        db.execute(
            update(DocumentSubmission)
            .where(
                DocumentSubmission.project_id == project_id,
                DocumentSubmission.document_type_id == doc_type.id,
                DocumentSubmission.is_final.is_(True),
            )
            .values(is_final=False)
            .execution_options(synchronize_session=False)
        )
        submission = DocumentSubmission(
            project_id=project_id,
            document_type_id=doc_type.id,
            version=next_version,
            status=SubmissionStatus.PENDING_SUPERVISOR.value,
            is_final=True,
            file_ref=obj_in.file_ref,
            comments=obj_in.comments,
            uploaded_by=obj_in.uploaded_by,
            uploaded_at=now,
        )
        db.add(submission)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(
            f"Another upload for {doc_type.code} on project {project_id} won the race; retry",
            details={"project_id": project_id, "document_type_id": doc_type.id},
        )
    db.refresh(submission)
    if latest is not None:
        db.refresh(latest)

    deadline = get_deadline_for(db, project_id, doc_type.id)
    if deadline_has_passed(deadline, now):
        logger.warning(
            f"Late submission created: project_id={project_id}, doc_type={doc_type.code}, "
            f"version={next_version}, uploaded_by={obj_in.uploaded_by}"
        )
    else:
        logger.info(
            f"Submission created: project_id={project_id}, doc_type={doc_type.code}, "
            f"version={next_version}, uploaded_by={obj_in.uploaded_by}"
        )

    if notifier is not None:
        notify_safely(
            notifier,
            project.supervisor_id,
            NotificationType.SUBMISSION_UPLOADED,
            {
                "project_id": project_id,
                "project_title": project.title,
                "submission_id": submission.id,
                "document_type": doc_type.title,
                "version": next_version,
            },
        )
    return submission


def update_submission(
    db: Session,
    *,
    submission_id: int,
    obj_in: SubmissionUpdate,
) -> DocumentSubmission:
    """Edit comments or swap the file while the supervisor has not approved."""
    submission = get_submission_for_update(db, submission_id)
    submission_state.ensure_mutable(submission)
    if not submission.is_final:
        raise BusinessRuleError(
            "SUPERSEDED_VERSION",
            f"Submission {submission_id} has been superseded by a newer version",
        )
    if not submission_state.is_editable(submission.status):
        raise BusinessRuleError(
            "NOT_EDITABLE",
            f"Submission {submission_id} cannot be edited in status {submission.status}",
        )

    update_data = obj_in.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if value is not None:
            setattr(submission, field, value)
    db.add(submission)
    db.commit()
    db.refresh(submission)
    return submission


def _upsert_supervisor_marks(
    db: Session,
    submission: DocumentSubmission,
    supervisor_id: Optional[int],
    score: Decimal,
    comments: Optional[str],
) -> SupervisorMarks:
    marks = (
        db.query(SupervisorMarks)
        .filter(SupervisorMarks.submission_id == submission.id)
        .one_or_none()
    )
    if marks is None:
        marks = SupervisorMarks(
            submission_id=submission.id,
            supervisor_id=supervisor_id,
            score=score,
            comments=comments,
        )
        logger.info(f"Saved supervisor marks for submission {submission.id}: score={score}")
    else:
        marks.supervisor_id = supervisor_id
        marks.score = score
        marks.comments = comments
        logger.info(f"Updated supervisor marks for submission {submission.id}: score={score}")
    db.add(marks)
    return marks


def review_submission(
    db: Session,
    *,
    submission_id: int,
    review: SupervisorReview,
    clock: Clock = system_clock,
    notifier: Optional[NotificationSink] = None,
    directory: Optional[Directory] = None,
) -> DocumentSubmission:
    """
    Supervisor approves or requests a revision.

    - revision needs feedback, and is not possible once the deadline passed
    - approval after the deadline needs a score; before it the score is optional
    - a locked submission cannot be reviewed (the deadline lock wins)
    """
    submission = get_submission_for_update(db, submission_id)
    submission_state.ensure_mutable(submission)
    if not submission.is_final:
        raise BusinessRuleError(
            "SUPERSEDED_VERSION",
            f"Submission {submission_id} has been superseded by a newer version",
        )

    now = clock.now()
    deadline = get_deadline_for(db, submission.project_id, submission.document_type_id)
    after_deadline = deadline_has_passed(deadline, now)

    if review.approve:
        submission_state.ensure_can_transition(submission, SubmissionStatus.APPROVED_BY_SUPERVISOR)
        score = None
        if review.score is not None:
            score = validate_score(review.score)
        elif after_deadline:
            raise BusinessRuleError(
                "SUPERVISOR_MARKS_REQUIRED",
                "A supervisor score is required when approving after the deadline has passed",
                details={"submission_id": submission_id},
            )

        submission_state.transition(
            db,
            submission,
            SubmissionStatus.APPROVED_BY_SUPERVISOR,
            supervisor_reviewed_at=now,
            supervisor_feedback=review.feedback,
        )
        if score is not None:
            _upsert_supervisor_marks(db, submission, review.supervisor_id, score, review.feedback)
        db.commit()
        db.refresh(submission)
        logger.info(
            f"Submission {submission_id} approved by supervisor {review.supervisor_id} "
            f"(after_deadline={after_deadline}, score={score})"
        )
        event = NotificationType.SUBMISSION_APPROVED
    else:
        if review.feedback is None or not review.feedback.strip():
            raise ValidationError("Feedback is required when requesting a revision", field="feedback")
        submission_state.ensure_can_transition(submission, SubmissionStatus.REVISION_REQUESTED)
        if after_deadline:
            raise BusinessRuleError(
                "CANNOT_REQUEST_REVISION",
                "Cannot request revision after the deadline has passed; approve with a score instead",
                details={"submission_id": submission_id},
            )

        submission_state.transition(
            db,
            submission,
            SubmissionStatus.REVISION_REQUESTED,
            supervisor_reviewed_at=now,
            supervisor_feedback=review.feedback,
        )
        db.commit()
        db.refresh(submission)
        logger.info(f"Revision requested for submission {submission_id}")
        event = NotificationType.SUBMISSION_REVISION_REQUESTED

    if notifier is not None and directory is not None:
        payload = {
            "project_id": submission.project_id,
            "submission_id": submission.id,
            "document_type_id": submission.document_type_id,
            "status": submission.status,
            "feedback": review.feedback,
        }
        if event == NotificationType.SUBMISSION_REVISION_REQUESTED:
            notify_many(notifier, directory.group_member_ids(submission.project_id), event, payload)
        else:
            leader_id = directory.group_leader_id(submission.project_id)
            notify_safely(notifier, leader_id, event, payload)

    return submission


def record_supervisor_score(
    db: Session,
    *,
    submission_id: int,
    supervisor_id: int,
    score,
    comments: Optional[str] = None,
) -> SupervisorMarks:
    """
    Score a submission that was approved without one (before its deadline).

    Separate from the approve transition; the status does not change.
    """
    submission = get_submission_for_update(db, submission_id)
    if submission_state.status_of(submission) not in SCORABLE_STATES:
        raise BusinessRuleError(
            "NOT_APPROVED",
            f"Submission {submission_id} must be approved before it can be scored "
            f"(status {submission.status})",
        )

    if db.query(FinalResult.id).filter(FinalResult.project_id == submission.project_id).first():
        raise BusinessRuleError(
            "RESULT_ALREADY_COMPUTED",
            f"Final result for project {submission.project_id} is already computed",
        )

    value = validate_score(score)
    marks = _upsert_supervisor_marks(db, submission, supervisor_id, value, comments)
    db.commit()
    db.refresh(marks)
    return marks


def get_supervisor_marks(db: Session, submission_id: int) -> Optional[SupervisorMarks]:
    return (
        db.query(SupervisorMarks)
        .filter(SupervisorMarks.submission_id == submission_id)
        .one_or_none()
    )


def to_public(
    db: Session,
    submission: DocumentSubmission,
    clock: Clock = system_clock,
) -> SubmissionPublic:
    """Submission as shown to clients, with its deadline and late flag."""
    deadline = get_deadline_for(db, submission.project_id, submission.document_type_id)
    view = SubmissionPublic.model_validate(submission)
    view.deadline_date = deadline
    view.deadline_passed = deadline_has_passed(deadline, clock.now())
    view.is_late = deadline is not None and ensure_utc(submission.uploaded_at) > deadline
    return view
