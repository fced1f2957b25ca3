# app/models/document_type.py
from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func
from app.db.base_class import Base


class DocumentType(Base):
    __tablename__ = "document_types"
    __table_args__ = (
        CheckConstraint(
            "weight_supervisor + weight_committee = 100",
            name="ck_document_types_weights_sum",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # percentages, always summing to 100
    weight_supervisor = Column(Integer, nullable=False, default=20)
    weight_committee = Column(Integer, nullable=False, default=80)

    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
