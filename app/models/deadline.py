# app/models/deadline.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base_class import Base


class DeadlineBatch(Base):
    """A named set of per-document-type deadlines shared by many projects."""

    __tablename__ = "deadline_batches"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), unique=True, nullable=False)
    description = Column(Text, nullable=True)

    # projects approved in [applies_from, applies_until) use this batch
    applies_from = Column(DateTime(timezone=True), nullable=False)
    applies_until = Column(DateTime(timezone=True), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    deadlines = relationship(
        "ProjectDeadline",
        cascade="all, delete-orphan",
        order_by="ProjectDeadline.sort_order",
        lazy="selectin",
    )


class ProjectDeadline(Base):
    __tablename__ = "project_deadlines"
    __table_args__ = (
        UniqueConstraint("batch_id", "document_type_id", name="uq_project_deadlines_batch_doc"),
    )

    id = Column(Integer, primary_key=True, index=True)
    batch_id = Column(
        Integer, ForeignKey("deadline_batches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    document_type_id = Column(Integer, ForeignKey("document_types.id"), nullable=False, index=True)

    deadline_date = Column(DateTime(timezone=True), nullable=False, index=True)
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class MissedDeadlineNotice(Base):
    """One row per (project, deadline) whose leader was told nothing arrived in time."""

    __tablename__ = "missed_deadline_notices"
    __table_args__ = (
        UniqueConstraint("project_id", "deadline_id", name="uq_missed_deadline_notices_project"),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    deadline_id = Column(
        Integer, ForeignKey("project_deadlines.id", ondelete="CASCADE"), nullable=False
    )
    notified_at = Column(DateTime(timezone=True), nullable=False)
