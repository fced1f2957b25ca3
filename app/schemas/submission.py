# app/schemas/submission.py
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class SubmissionCreate(BaseModel):
    document_type_id: int
    file_ref: str = Field(min_length=1, max_length=500)
    comments: str | None = None
    uploaded_by: int | None = None


class SubmissionUpdate(BaseModel):
    """Only allowed while the submission is still editable."""
    file_ref: str | None = Field(default=None, min_length=1, max_length=500)
    comments: str | None = None


class SupervisorReview(BaseModel):
    supervisor_id: int
    approve: bool
    feedback: str | None = None
    # mandatory when approving after the deadline
    score: Decimal | None = Field(default=None, ge=0, le=100)


class SupervisorScoreIn(BaseModel):
    supervisor_id: int
    score: Decimal = Field(ge=0, le=100)
    comments: str | None = None


class SupervisorMarksPublic(BaseModel):
    submission_id: int
    supervisor_id: int | None = None
    score: Decimal
    comments: str | None = None

    model_config = {"from_attributes": True}


class SubmissionPublic(BaseModel):
    id: int
    project_id: int
    document_type_id: int
    version: int
    status: str
    is_final: bool
    file_ref: str
    comments: str | None = None
    uploaded_by: int | None = None
    uploaded_at: datetime
    supervisor_reviewed_at: datetime | None = None
    supervisor_feedback: str | None = None
    locked_at: datetime | None = None
    committee_avg_score: Decimal | None = None
    eval_finalized_at: datetime | None = None

    # derived from the project's deadline for this document type
    deadline_date: datetime | None = None
    deadline_passed: bool = False
    is_late: bool = False

    model_config = {"from_attributes": True}
