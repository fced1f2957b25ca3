# app/services/deadline_service.py
"""
Deadline batches: validation, creation, lookup and project assignment.

A batch is created atomically with all of its per-document-type deadlines and
is never edited afterwards, only deactivated.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.clock import Clock, ensure_utc, system_clock
from app.core.config import settings
from app.core.exceptions import (
    BusinessRuleError,
    ConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from app.models.deadline import DeadlineBatch, ProjectDeadline
from app.models.document_type import DocumentType
from app.models.project import Project
from app.schemas.deadline import DeadlineBatchCreate, ProjectDeadlineView
from app.services.directory import Directory
from app.services.notifications import (
    NotificationSink,
    NotificationType,
    notify_many,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole 24-hour periods from `earlier` to `later`."""
    delta = ensure_utc(later) - ensure_utc(earlier)
    return int(delta.total_seconds() // SECONDS_PER_DAY)


def validate_batch(
    db: Session,
    batch_in: DeadlineBatchCreate,
    *,
    min_days: Optional[int] = None,
) -> List[Tuple[int, DocumentType, datetime]]:
    """
    Check a candidate batch before anything is written.

    Returns the deadlines resolved to (sort_order, document_type, deadline_date)
    sorted by sort_order.
    """
    if min_days is None:
        min_days = settings.MIN_DAYS_BETWEEN_DEADLINES

    if not batch_in.name or not batch_in.name.strip():
        raise ValidationError("Batch name is required", field="name")

    if db.query(DeadlineBatch).filter(DeadlineBatch.name == batch_in.name).first():
        raise ConflictError(f"A deadline batch named '{batch_in.name}' already exists")

    if batch_in.applies_until is not None and ensure_utc(batch_in.applies_until) <= ensure_utc(
        batch_in.applies_from
    ):
        raise ValidationError("applies_until must be after applies_from", field="applies_until")

    if not batch_in.deadlines:
        raise ValidationError("A batch needs at least one deadline", field="deadlines")

    seen = set()
    resolved = []
    for item in batch_in.deadlines:
        if item.document_type_id in seen:
            raise ValidationError(
                f"Document type {item.document_type_id} appears more than once",
                field="deadlines",
            )
        seen.add(item.document_type_id)

        doc_type = db.get(DocumentType, item.document_type_id)
        if doc_type is None:
            raise ResourceNotFoundError("DocumentType", item.document_type_id)

        sort_order = item.sort_order if item.sort_order is not None else doc_type.display_order
        resolved.append((sort_order, doc_type, ensure_utc(item.deadline_date)))

    resolved.sort(key=lambda r: (r[0], r[2]))

    for (_, prev_type, prev_date), (_, next_type, next_date) in zip(resolved, resolved[1:]):
        gap = days_between(prev_date, next_date)
        if gap < min_days:
            raise BusinessRuleError(
                "INVALID_DEADLINE_GAP",
                f"Deadlines must be at least {min_days} days apart. Found only {gap} days "
                f"between {prev_type.title} and {next_type.title}.",
                details={
                    "gap_days": gap,
                    "min_days": min_days,
                    "from_document_type": prev_type.code,
                    "to_document_type": next_type.code,
                },
            )

    return resolved


def create_batch(
    db: Session,
    *,
    obj_in: DeadlineBatchCreate,
    min_days: Optional[int] = None,
) -> DeadlineBatch:
    resolved = validate_batch(db, obj_in, min_days=min_days)

    batch = DeadlineBatch(
        name=obj_in.name,
        description=obj_in.description,
        applies_from=ensure_utc(obj_in.applies_from),
        applies_until=ensure_utc(obj_in.applies_until),
        is_active=True,
        created_by=obj_in.created_by,
    )
    for sort_order, doc_type, deadline_date in resolved:
        batch.deadlines.append(
            ProjectDeadline(
                document_type_id=doc_type.id,
                deadline_date=deadline_date,
                sort_order=sort_order,
            )
        )

    db.add(batch)
    db.commit()
    db.refresh(batch)
    logger.info(f"Deadline batch '{batch.name}' created with {len(resolved)} deadlines")
    return batch


def get_batch(db: Session, batch_id: int) -> Optional[DeadlineBatch]:
    return db.get(DeadlineBatch, batch_id)


def get_batch_or_404(db: Session, batch_id: int) -> DeadlineBatch:
    batch = get_batch(db, batch_id)
    if batch is None:
        raise ResourceNotFoundError("DeadlineBatch", batch_id)
    return batch


def list_batches(
    db: Session,
    *,
    active_only: bool = False,
    skip: int = 0,
    limit: int = 100,
) -> List[DeadlineBatch]:
    query = db.query(DeadlineBatch)
    if active_only:
        query = query.filter(DeadlineBatch.is_active.is_(True))
    return (
        query.order_by(DeadlineBatch.applies_from.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def deactivate_batch(db: Session, *, batch_id: int) -> DeadlineBatch:
    batch = get_batch_or_404(db, batch_id)
    batch.is_active = False
    db.add(batch)
    db.commit()
    db.refresh(batch)
    logger.info(f"Deadline batch '{batch.name}' deactivated")
    return batch


def batch_applies_at(batch: DeadlineBatch, at: datetime) -> bool:
    if not batch.is_active:
        return False
    at = ensure_utc(at)
    if at < ensure_utc(batch.applies_from):
        return False
    return batch.applies_until is None or at < ensure_utc(batch.applies_until)


def find_applicable_batch(db: Session, at: datetime) -> Optional[DeadlineBatch]:
    """The active batch covering `at`; the most recently starting one wins."""
    candidates = (
        db.query(DeadlineBatch)
        .filter(DeadlineBatch.is_active.is_(True))
        .order_by(DeadlineBatch.applies_from.desc())
        .all()
    )
    for batch in candidates:
        if batch_applies_at(batch, at):
            return batch
    return None


def assign_project_batch(
    db: Session,
    *,
    project_id: int,
    batch_id: Optional[int] = None,
    at: Optional[datetime] = None,
    clock: Clock = system_clock,
    notifier: Optional[NotificationSink] = None,
    directory: Optional[Directory] = None,
) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise ResourceNotFoundError("Project", project_id)

    if batch_id is not None:
        batch = get_batch_or_404(db, batch_id)
        if not batch.is_active:
            raise BusinessRuleError("BATCH_INACTIVE", f"Deadline batch '{batch.name}' is inactive")
    else:
        at = at or clock.now()
        batch = find_applicable_batch(db, at)
        if batch is None:
            raise BusinessRuleError(
                "NO_APPLICABLE_BATCH",
                f"No active deadline batch applies at {ensure_utc(at).isoformat()}",
            )

    project.deadline_batch_id = batch.id
    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info(f"Project {project_id} assigned to deadline batch '{batch.name}'")

    if notifier is not None and directory is not None:
        notify_many(
            notifier,
            directory.group_member_ids(project_id),
            NotificationType.DEADLINE_SET,
            {
                "project_id": project_id,
                "project_title": project.title,
                "batch_id": batch.id,
                "batch_name": batch.name,
            },
        )
    return project


def get_deadline_for(db: Session, project_id: int, document_type_id: int) -> Optional[datetime]:
    """Deadline of one document type under the project's batch, if any."""
    row = (
        db.query(ProjectDeadline.deadline_date)
        .join(Project, Project.deadline_batch_id == ProjectDeadline.batch_id)
        .filter(
            Project.id == project_id,
            ProjectDeadline.document_type_id == document_type_id,
        )
        .first()
    )
    return ensure_utc(row.deadline_date) if row else None


def deadline_has_passed(deadline: Optional[datetime], now: datetime) -> bool:
    # same cut-off as the sweep: deadline_date <= now
    return deadline is not None and ensure_utc(deadline) <= ensure_utc(now)


def get_project_deadlines(
    db: Session,
    *,
    project_id: int,
    clock: Clock = system_clock,
) -> List[ProjectDeadlineView]:
    project = db.get(Project, project_id)
    if project is None:
        raise ResourceNotFoundError("Project", project_id)
    if project.deadline_batch_id is None:
        return []

    now = clock.now()
    rows = (
        db.query(ProjectDeadline, DocumentType)
        .join(DocumentType, DocumentType.id == ProjectDeadline.document_type_id)
        .filter(ProjectDeadline.batch_id == project.deadline_batch_id)
        .order_by(ProjectDeadline.sort_order.asc())
        .all()
    )
    return [
        ProjectDeadlineView(
            document_type_id=doc_type.id,
            document_type_code=doc_type.code,
            document_type_title=doc_type.title,
            deadline_date=ensure_utc(deadline.deadline_date),
            sort_order=deadline.sort_order,
            is_past=deadline_has_passed(ensure_utc(deadline.deadline_date), now),
        )
        for deadline, doc_type in rows
    ]
