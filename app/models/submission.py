# app/models/submission.py
import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from app.db.base_class import Base


class SubmissionStatus(str, enum.Enum):
    PENDING_SUPERVISOR = "PENDING_SUPERVISOR"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    APPROVED_BY_SUPERVISOR = "APPROVED_BY_SUPERVISOR"
    LOCKED_FOR_EVAL = "LOCKED_FOR_EVAL"
    EVAL_IN_PROGRESS = "EVAL_IN_PROGRESS"
    EVAL_FINALIZED = "EVAL_FINALIZED"


class DocumentSubmission(Base):
    __tablename__ = "document_submissions"
    __table_args__ = (
        UniqueConstraint(
            "project_id", "document_type_id", "version",
            name="uq_submissions_project_doc_version",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    document_type_id = Column(Integer, ForeignKey("document_types.id"), nullable=False, index=True)
    version = Column(Integer, nullable=False)

    # PENDING_SUPERVISOR / REVISION_REQUESTED / APPROVED_BY_SUPERVISOR /
    # LOCKED_FOR_EVAL / EVAL_IN_PROGRESS / EVAL_FINALIZED
    status = Column(
        String(40),
        nullable=False,
        default=SubmissionStatus.PENDING_SUPERVISOR.value,
        index=True,
    )
    is_final = Column(Boolean, nullable=False, default=False)

    # opaque reference handed out by the file service
    file_ref = Column(String(500), nullable=False)
    comments = Column(Text, nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), nullable=False)

    # supervisor review
    supervisor_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    supervisor_feedback = Column(Text, nullable=True)

    # committee evaluation
    locked_at = Column(DateTime(timezone=True), nullable=True)
    committee_avg_score = Column(Numeric(7, 4), nullable=True)
    eval_finalized_at = Column(DateTime(timezone=True), nullable=True)

    # bumped on every status change
    row_version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


# at most one final version per (project, document type)
Index(
    "uq_submissions_project_doc_final",
    DocumentSubmission.project_id,
    DocumentSubmission.document_type_id,
    unique=True,
    postgresql_where=DocumentSubmission.is_final.is_(True),
    sqlite_where=DocumentSubmission.is_final.is_(True),
)


class SupervisorMarks(Base):
    __tablename__ = "supervisor_marks"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(
        Integer,
        ForeignKey("document_submissions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    supervisor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # 0-100, weighted by document_types.weight_supervisor
    score = Column(Numeric(7, 4), nullable=False)
    comments = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class EvaluationMarks(Base):
    __tablename__ = "evaluation_marks"
    __table_args__ = (
        UniqueConstraint(
            "submission_id", "evaluator_id",
            name="uq_evaluation_marks_submission_evaluator",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(
        Integer,
        ForeignKey("document_submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    evaluator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # 0-100, averaged across evaluators then weighted by weight_committee
    score = Column(Numeric(7, 4), nullable=False)
    comments = Column(Text, nullable=True)

    # immutable once true
    is_final = Column(Boolean, nullable=False, default=False)
    finalized_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
