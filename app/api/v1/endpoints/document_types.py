# app/api/v1/endpoints/document_types.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.document_type import (
    DocumentTypeCreate,
    DocumentTypePublic,
    DocumentTypeUpdate,
)
from app.services import document_type_service

router = APIRouter(prefix="/document-types", tags=["document-types"])


@router.post("/", response_model=DocumentTypePublic, status_code=status.HTTP_201_CREATED)
def create_document_type(obj_in: DocumentTypeCreate, db: Session = Depends(get_db)):
    return document_type_service.create_document_type(db, obj_in=obj_in)


@router.get("/", response_model=List[DocumentTypePublic])
def list_document_types(active_only: bool = False, db: Session = Depends(get_db)):
    return document_type_service.list_document_types(db, active_only=active_only)


@router.get("/{document_type_id}", response_model=DocumentTypePublic)
def get_document_type(document_type_id: int, db: Session = Depends(get_db)):
    return document_type_service.get_document_type_or_404(db, document_type_id)


@router.patch("/{document_type_id}", response_model=DocumentTypePublic)
def update_document_type(
    document_type_id: int,
    obj_in: DocumentTypeUpdate,
    db: Session = Depends(get_db),
):
    db_obj = document_type_service.get_document_type_or_404(db, document_type_id)
    return document_type_service.update_document_type(db, db_obj=db_obj, obj_in=obj_in)


@router.delete("/{document_type_id}", response_model=DocumentTypePublic)
def deactivate_document_type(document_type_id: int, db: Session = Depends(get_db)):
    """Deactivates; document types referenced by submissions are never removed."""
    db_obj = document_type_service.get_document_type_or_404(db, document_type_id)
    return document_type_service.deactivate_document_type(db, db_obj=db_obj)
