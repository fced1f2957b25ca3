# app/schemas/evaluation.py
from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field


class MarkIn(BaseModel):
    evaluator_id: int
    score: Decimal = Field(ge=0, le=100)
    comments: str | None = None


class RequiredEvaluatorsIn(BaseModel):
    # defaults to the whole evaluation committee
    required_evaluator_ids: List[int] | None = None


class FinalizeIn(RequiredEvaluatorsIn):
    evaluator_id: int


class EvaluationMarkPublic(BaseModel):
    id: int
    submission_id: int
    evaluator_id: int
    score: Decimal
    comments: str | None = None
    is_final: bool
    finalized_at: datetime | None = None

    model_config = {"from_attributes": True}


class EvaluationSummary(BaseModel):
    submission_id: int
    submission_status: str
    total_marks: int
    finalized_count: int
    average_score: Decimal | None = None
    all_finalized: bool
    marks: List[EvaluationMarkPublic]
