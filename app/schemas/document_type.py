# app/schemas/document_type.py
from datetime import datetime

from pydantic import BaseModel, Field


class DocumentTypeBase(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    weight_supervisor: int = Field(ge=0, le=100)
    weight_committee: int = Field(ge=0, le=100)
    display_order: int = 0


class DocumentTypeCreate(DocumentTypeBase):
    pass


class DocumentTypeUpdate(BaseModel):
    code: str | None = Field(default=None, min_length=1, max_length=50)
    title: str | None = None
    description: str | None = None
    weight_supervisor: int | None = Field(default=None, ge=0, le=100)
    weight_committee: int | None = Field(default=None, ge=0, le=100)
    display_order: int | None = None
    is_active: bool | None = None


class DocumentTypePublic(DocumentTypeBase):
    id: int
    is_active: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
