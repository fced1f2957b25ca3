# app/services/deadline_sweep.py
"""
Lock approved submissions whose deadline has passed.

Safe to run repeatedly and from several processes at once: every lock is a
compare-and-set claim committed on its own, so a submission is locked (and
announced) exactly once. Groups with nothing uploaded by the deadline get a
single DEADLINE_MISSED notice, recorded so later sweeps stay quiet.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock, ensure_utc, system_clock
from app.models.deadline import DeadlineBatch, MissedDeadlineNotice, ProjectDeadline
from app.models.project import Project
from app.models.submission import DocumentSubmission, SubmissionStatus
from app.services import submission_state
from app.services.directory import Directory, SqlDirectory
from app.services.notifications import (
    NotificationSink,
    NotificationType,
    notify_many,
    notify_safely,
)
from app.services.submission_service import get_final_submission

logger = logging.getLogger(__name__)


def _lock_one(
    db: Session,
    submission: DocumentSubmission,
    now,
) -> bool:
    """True when this call locked the submission."""
    if submission.status != SubmissionStatus.APPROVED_BY_SUPERVISOR.value:
        logger.debug(
            f"Skipping submission {submission.id} in status {submission.status}"
        )
        return False

    if not submission_state.lock_for_evaluation(db, submission, now):
        db.rollback()
        return False

    db.commit()
    return True


def _record_missed(
    db: Session,
    project_id: int,
    deadline: ProjectDeadline,
    now,
) -> bool:
    """True when no notice existed yet and this call recorded one."""
    exists = (
        db.query(MissedDeadlineNotice.id)
        .filter(
            MissedDeadlineNotice.project_id == project_id,
            MissedDeadlineNotice.deadline_id == deadline.id,
        )
        .first()
    )
    if exists:
        return False

    db.add(MissedDeadlineNotice(project_id=project_id, deadline_id=deadline.id, notified_at=now))
    try:
        db.commit()
    except IntegrityError:
        # another sweep recorded it first
        db.rollback()
        return False
    return True


def sweep_passed_deadlines(
    db: Session,
    *,
    clock: Clock = system_clock,
    notifier: Optional[NotificationSink] = None,
    directory: Optional[Directory] = None,
) -> int:
    """Returns how many submissions this run locked."""
    # deadlines are stored as UTC; SQLite compares them as plain strings
    now = ensure_utc(clock.now())
    if directory is None:
        directory = SqlDirectory(db)

    passed = (
        db.query(ProjectDeadline.id, ProjectDeadline.batch_id)
        .join(DeadlineBatch, DeadlineBatch.id == ProjectDeadline.batch_id)
        .filter(
            DeadlineBatch.is_active.is_(True),
            ProjectDeadline.deadline_date <= now,
        )
        .order_by(ProjectDeadline.deadline_date.asc(), ProjectDeadline.id.asc())
        .all()
    )
    if not passed:
        logger.debug("Deadline sweep: no passed deadlines")
        return 0

    locked = 0
    failed = 0
    for deadline_id, batch_id in passed:
        deadline = db.get(ProjectDeadline, deadline_id)
        project_ids = [
            row.id
            for row in db.query(Project.id)
            .filter(Project.deadline_batch_id == batch_id)
            .order_by(Project.id)
            .all()
        ]
        for project_id in project_ids:
            missed = False
            submission = None
            try:
                submission = get_final_submission(db, project_id, deadline.document_type_id)
                if submission is None:
                    logger.warning(
                        f"No submission for project {project_id}, document type "
                        f"{deadline.document_type_id} at deadline {deadline.deadline_date}"
                    )
                    missed = notifier is not None and _record_missed(
                        db, project_id, deadline, now
                    )
                elif not _lock_one(db, submission, now):
                    submission = None
            except Exception as e:
                db.rollback()
                failed += 1
                logger.error(
                    f"Deadline sweep failed for project {project_id}, "
                    f"document type {deadline.document_type_id}: {e}",
                    exc_info=True,
                )
                continue

            if missed:
                notify_safely(
                    notifier,
                    directory.group_leader_id(project_id),
                    NotificationType.DEADLINE_MISSED,
                    {
                        "project_id": project_id,
                        "deadline_id": deadline.id,
                        "document_type_id": deadline.document_type_id,
                        "deadline_date": ensure_utc(deadline.deadline_date).isoformat(),
                    },
                )
                continue

            if submission is None:
                continue

            locked += 1
            logger.info(
                f"Locked submission {submission.id} (project {project_id}) for evaluation"
            )
            if notifier is not None:
                payload = {
                    "project_id": project_id,
                    "submission_id": submission.id,
                    "document_type_id": submission.document_type_id,
                }
                recipients = list(directory.evaluation_committee_ids())
                leader_id = directory.group_leader_id(project_id)
                if leader_id is not None and leader_id not in recipients:
                    recipients.append(leader_id)
                notify_many(notifier, recipients, NotificationType.SUBMISSION_LOCKED, payload)

    logger.info(
        f"Deadline sweep done: {len(passed)} passed deadlines, {locked} locked, {failed} failed"
    )
    return locked
