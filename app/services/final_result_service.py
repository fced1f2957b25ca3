# app/services/final_result_service.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock, system_clock
from app.core.exceptions import BusinessRuleError, ConflictError, ResourceNotFoundError
from app.models.deadline import DeadlineBatch, ProjectDeadline
from app.models.document_type import DocumentType
from app.models.final_result import FinalResult
from app.models.project import Project
from app.models.submission import (
    DocumentSubmission,
    EvaluationMarks,
    SubmissionStatus,
    SupervisorMarks,
)
from app.schemas.result import DocumentScoreBreakdown, FinalResultBreakdown
from app.services.directory import Directory
from app.services.notifications import NotificationSink, NotificationType, notify_many
from app.services.score_weighting import mean4, to_decimal, weighted_score

logger = logging.getLogger(__name__)

ZERO = Decimal("0.0000")


def get_final_result(db: Session, project_id: int) -> Optional[FinalResult]:
    return db.query(FinalResult).filter(FinalResult.project_id == project_id).one_or_none()


def get_released_result(db: Session, project_id: int) -> FinalResult:
    """Student view: only a released result exists as far as they can tell."""
    result = get_final_result(db, project_id)
    if result is None or not result.released:
        raise ResourceNotFoundError("FinalResult", project_id)
    return result


def read_breakdown(result: FinalResult) -> FinalResultBreakdown:
    return FinalResultBreakdown.model_validate(result.details)


def _document_breakdown(
    db: Session,
    submission: DocumentSubmission,
    doc_type: DocumentType,
) -> DocumentScoreBreakdown:
    marks = (
        db.query(SupervisorMarks)
        .filter(SupervisorMarks.submission_id == submission.id)
        .one_or_none()
    )
    if marks is None:
        logger.warning(
            f"Submission {submission.id} ({doc_type.code}) has no supervisor score; counting 0"
        )
        supervisor_score = ZERO
    else:
        supervisor_score = to_decimal(marks.score)

    evaluator_count = (
        db.query(EvaluationMarks)
        .filter(
            EvaluationMarks.submission_id == submission.id,
            EvaluationMarks.is_final.is_(True),
        )
        .count()
    )
    if submission.committee_avg_score is None:
        logger.warning(
            f"Submission {submission.id} ({doc_type.code}) has no committee average; counting 0"
        )
        committee_avg = ZERO
    else:
        committee_avg = to_decimal(submission.committee_avg_score)

    return DocumentScoreBreakdown(
        submission_id=submission.id,
        document_type_id=doc_type.id,
        doc_type_code=doc_type.code,
        doc_type_title=doc_type.title,
        supervisor_score=supervisor_score,
        supervisor_weight=doc_type.weight_supervisor,
        committee_avg_score=committee_avg,
        committee_weight=doc_type.weight_committee,
        committee_evaluator_count=evaluator_count,
        weighted_score=weighted_score(
            supervisor_score,
            committee_avg,
            doc_type.weight_supervisor,
            doc_type.weight_committee,
        ),
    )


def compute_final_result(
    db: Session,
    project_id: int,
    *,
    computed_by: int | None = None,
    clock: Clock = system_clock,
) -> FinalResult:
    """
    Weighted project grade from the finalized version of every document type
    in the project's deadline batch.

    Nothing is written unless every required document has been finalized.
    """
    if get_final_result(db, project_id) is not None:
        raise ConflictError(
            f"Final result for project {project_id} is already computed",
            details={"project_id": project_id},
        )

    project = db.get(Project, project_id)
    if project is None:
        raise ResourceNotFoundError("Project", project_id)
    if project.deadline_batch_id is None:
        raise BusinessRuleError(
            "NO_DEADLINE_BATCH",
            f"Project {project_id} has no deadline batch assigned",
        )

    batch = db.get(DeadlineBatch, project.deadline_batch_id)
    required: List[ProjectDeadline] = list(batch.deadlines) if batch is not None else []
    if not required:
        raise BusinessRuleError(
            "NO_DEADLINES",
            f"No deadlines configured for the batch of project {project_id}",
        )

    finalized = (
        db.query(DocumentSubmission)
        .filter(
            DocumentSubmission.project_id == project_id,
            DocumentSubmission.is_final.is_(True),
            DocumentSubmission.status == SubmissionStatus.EVAL_FINALIZED.value,
        )
        .all()
    )
    if not finalized:
        raise BusinessRuleError(
            "NO_FINALIZED_SUBMISSIONS",
            f"No finalized submissions found for project {project_id}",
        )

    by_type = {s.document_type_id: s for s in finalized}
    doc_types = {
        dt.id: dt
        for dt in db.query(DocumentType)
        .filter(DocumentType.id.in_([d.document_type_id for d in required]))
        .all()
    }

    missing = [doc_types[d.document_type_id] for d in required if d.document_type_id not in by_type]
    if missing:
        titles = ", ".join(dt.title for dt in missing)
        raise BusinessRuleError(
            "INCOMPLETE_EVALUATIONS",
            f"Not all required documents have been evaluated. Missing: {titles}",
            details={"missing": [dt.code for dt in missing]},
        )

    documents = [
        _document_breakdown(db, by_type[d.document_type_id], doc_types[d.document_type_id])
        for d in sorted(required, key=lambda d: d.sort_order)
    ]
    total = mean4(doc.weighted_score for doc in documents)

    breakdown = FinalResultBreakdown(
        documents=documents,
        total_score=total,
        computed_at=clock.now(),
        computed_by=computed_by,
    )
    result = FinalResult(
        project_id=project_id,
        total_score=total,
        details=breakdown.model_dump(mode="json"),
        computed_by=computed_by,
        released=False,
    )
    db.add(result)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(
            f"Final result for project {project_id} is already computed",
            details={"project_id": project_id},
        )
    db.refresh(result)
    logger.info(
        f"Final result computed for project {project_id}: total={total} "
        f"over {len(documents)} documents"
    )
    return result


def release_final_result(
    db: Session,
    project_id: int,
    *,
    released_by: int,
    clock: Clock = system_clock,
    notifier: Optional[NotificationSink] = None,
    directory: Optional[Directory] = None,
) -> FinalResult:
    """One-time release; a second release is a conflict and changes nothing."""
    result = get_final_result(db, project_id)
    if result is None:
        raise ResourceNotFoundError("FinalResult", project_id)

    outcome = db.execute(
        update(FinalResult)
        .where(FinalResult.id == result.id, FinalResult.released.is_(False))
        .values(released=True, released_by=released_by, released_at=clock.now())
        .execution_options(synchronize_session=False)
    )
    if outcome.rowcount != 1:
        db.rollback()
        raise ConflictError(
            f"Final result for project {project_id} has already been released",
            details={"project_id": project_id},
        )
    db.commit()
    db.refresh(result)
    logger.info(f"Final result for project {project_id} released by {released_by}")

    if notifier is not None and directory is not None:
        notify_many(
            notifier,
            directory.group_member_ids(project_id),
            NotificationType.RESULT_RELEASED,
            {"project_id": project_id, "total_score": str(result.total_score)},
        )
    return result
