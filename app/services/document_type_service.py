# app/services/document_type_service.py
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, ResourceNotFoundError, ValidationError
from app.models.document_type import DocumentType
from app.schemas.document_type import DocumentTypeCreate, DocumentTypeUpdate

logger = logging.getLogger(__name__)


def validate_weights(weight_supervisor: int, weight_committee: int) -> None:
    for name, value in (
        ("weight_supervisor", weight_supervisor),
        ("weight_committee", weight_committee),
    ):
        if value is None or not 0 <= value <= 100:
            raise ValidationError(f"{name} must be between 0 and 100", field=name)
    if weight_supervisor + weight_committee != 100:
        raise ValidationError(
            f"Supervisor and committee weights must sum to 100 "
            f"(got {weight_supervisor} + {weight_committee})",
            field="weight_supervisor",
        )


def create_document_type(db: Session, *, obj_in: DocumentTypeCreate) -> DocumentType:
    validate_weights(obj_in.weight_supervisor, obj_in.weight_committee)

    if db.query(DocumentType).filter(DocumentType.code == obj_in.code).first():
        raise ConflictError(f"Document type with code '{obj_in.code}' already exists")

    db_obj = DocumentType(
        code=obj_in.code,
        title=obj_in.title,
        description=obj_in.description,
        weight_supervisor=obj_in.weight_supervisor,
        weight_committee=obj_in.weight_committee,
        display_order=obj_in.display_order,
        is_active=True,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    logger.info(f"Document type created: {db_obj.code}")
    return db_obj


def get_document_type(db: Session, document_type_id: int) -> Optional[DocumentType]:
    return db.get(DocumentType, document_type_id)


def get_document_type_or_404(db: Session, document_type_id: int) -> DocumentType:
    doc_type = get_document_type(db, document_type_id)
    if doc_type is None:
        raise ResourceNotFoundError("DocumentType", document_type_id)
    return doc_type


def list_document_types(db: Session, *, active_only: bool = False) -> List[DocumentType]:
    query = db.query(DocumentType)
    if active_only:
        query = query.filter(DocumentType.is_active.is_(True))
    return query.order_by(DocumentType.display_order.asc(), DocumentType.id.asc()).all()


def update_document_type(
    db: Session,
    *,
    db_obj: DocumentType,
    obj_in: DocumentTypeUpdate,
) -> DocumentType:
    # an explicit null leaves the field unchanged
    update_data = {
        field: value
        for field, value in obj_in.model_dump(exclude_unset=True).items()
        if value is not None
    }

    validate_weights(
        update_data.get("weight_supervisor", db_obj.weight_supervisor),
        update_data.get("weight_committee", db_obj.weight_committee),
    )

    new_code = update_data.get("code")
    if new_code and new_code != db_obj.code:
        clash = (
            db.query(DocumentType)
            .filter(DocumentType.code == new_code, DocumentType.id != db_obj.id)
            .first()
        )
        if clash:
            raise ConflictError(f"Document type with code '{new_code}' already exists")

    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    logger.info(f"Document type updated: {db_obj.code}")
    return db_obj


def deactivate_document_type(db: Session, *, db_obj: DocumentType) -> DocumentType:
    """Document types are never deleted; submissions keep pointing at them."""
    db_obj.is_active = False
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    logger.info(f"Document type deactivated: {db_obj.code}")
    return db_obj
