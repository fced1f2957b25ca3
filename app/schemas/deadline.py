# app/schemas/deadline.py
from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class DeadlineItem(BaseModel):
    document_type_id: int
    deadline_date: datetime
    # defaults to the document type's display_order
    sort_order: int | None = None


class DeadlineBatchCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    applies_from: datetime
    applies_until: datetime | None = None
    deadlines: List[DeadlineItem]
    created_by: int | None = None


class ProjectDeadlinePublic(BaseModel):
    id: int
    batch_id: int
    document_type_id: int
    deadline_date: datetime
    sort_order: int

    model_config = {"from_attributes": True}


class DeadlineBatchPublic(BaseModel):
    id: int
    name: str
    description: str | None = None
    applies_from: datetime
    applies_until: datetime | None = None
    is_active: bool
    created_by: int | None = None
    created_at: datetime | None = None
    deadlines: List[ProjectDeadlinePublic] = []

    model_config = {"from_attributes": True}


class ProjectBatchAssign(BaseModel):
    """Either an explicit batch, or the batch applicable at `at` (default: now)."""
    batch_id: int | None = None
    at: datetime | None = None


class ProjectDeadlineView(BaseModel):
    document_type_id: int
    document_type_code: str
    document_type_title: str
    deadline_date: datetime
    sort_order: int
    is_past: bool
