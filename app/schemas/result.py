# app/schemas/result.py
from datetime import datetime
from decimal import Decimal
from typing import List, Literal

from pydantic import BaseModel

BREAKDOWN_SCHEMA_VERSION = 1


class DocumentScoreBreakdown(BaseModel):
    submission_id: int
    document_type_id: int
    doc_type_code: str
    doc_type_title: str
    supervisor_score: Decimal
    supervisor_weight: int
    committee_avg_score: Decimal
    committee_weight: int
    committee_evaluator_count: int
    weighted_score: Decimal


class FinalResultBreakdown(BaseModel):
    """Auditable record of how a project's grade was derived."""
    schema_version: Literal[1] = BREAKDOWN_SCHEMA_VERSION
    documents: List[DocumentScoreBreakdown]
    total_score: Decimal
    computed_at: datetime
    computed_by: int | None = None


class ComputeRequest(BaseModel):
    computed_by: int | None = None


class ReleaseRequest(BaseModel):
    released_by: int


class FinalResultPublic(BaseModel):
    id: int
    project_id: int
    total_score: Decimal
    details: FinalResultBreakdown
    released: bool
    released_by: int | None = None
    released_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class SweepResult(BaseModel):
    locked: int
    mode: str
