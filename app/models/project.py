# app/models/project.py
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func
from app.db.base_class import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    supervisor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # the project's required document set
    deadline_batch_id = Column(Integer, ForeignKey("deadline_batches.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ProjectMember(Base):
    """Group membership, written by the external group service and only read here."""

    __tablename__ = "project_members"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_leader = Column(Boolean, nullable=False, default=False)
