# app/models/final_result.py
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric
from sqlalchemy.sql import func
from app.db.base_class import Base


class FinalResult(Base):
    __tablename__ = "final_results"

    id = Column(Integer, primary_key=True, index=True)

    # one result per project; the unique constraint is the compute claim
    project_id = Column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    total_score = Column(Numeric(7, 4), nullable=False)

    # FinalResultBreakdown serialized with model_dump(mode="json")
    details = Column(JSON, nullable=False)

    computed_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    released = Column(Boolean, nullable=False, default=False)
    released_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    released_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
