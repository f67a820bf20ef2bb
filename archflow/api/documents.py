from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from archflow.api.deps import get_actor_id, get_db
from archflow.schemas.common import ListResponse
from archflow.schemas.document import (
    DocumentCreate,
    DocumentRead,
    DocumentUpdate,
    DocumentVersionCreate,
    DocumentVersionRead,
    VersionRestoreRequest,
)
from archflow.services import document as doc_service

router = APIRouter(prefix="/documents", tags=["documents"])


# ------------------------------------------------------------------
# Document CRUD
# ------------------------------------------------------------------


@router.post("", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
def create_document(
    payload: DocumentCreate,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    if payload.created_by is None:
        payload = payload.model_copy(update={"created_by": actor_id})
    return doc_service.documents.create(db, payload)


@router.get("/{document_id}", response_model=DocumentRead)
def get_document(document_id: str, db: Session = Depends(get_db)):
    return doc_service.documents.get(db, document_id)


@router.get("", response_model=ListResponse[DocumentRead])
def list_documents(
    submission_id: str | None = None,
    project_id: str | None = None,
    owner_type: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    document_type: str | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return doc_service.documents.list_response(
        db,
        submission_id,
        project_id,
        owner_type,
        status_filter,
        document_type,
        is_active,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.patch("/{document_id}", response_model=DocumentRead)
def update_document(
    document_id: str, payload: DocumentUpdate, db: Session = Depends(get_db)
):
    return doc_service.documents.update(db, document_id, payload)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def archive_document(
    document_id: str,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    doc_service.documents.archive(db, document_id, actor_id)


# ------------------------------------------------------------------
# Version sub-endpoints
# ------------------------------------------------------------------


@router.post(
    "/{document_id}/versions",
    response_model=DocumentVersionRead,
    status_code=status.HTTP_201_CREATED,
)
def upload_version(
    document_id: str,
    payload: DocumentVersionCreate,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    if payload.uploaded_by is None:
        payload = payload.model_copy(update={"uploaded_by": actor_id})
    return doc_service.documents.upload_version(db, document_id, payload)


@router.get(
    "/{document_id}/versions",
    response_model=ListResponse[DocumentVersionRead],
)
def list_versions(document_id: str, db: Session = Depends(get_db)):
    items = doc_service.documents.list_versions(db, document_id)
    return {"items": items, "count": len(items), "limit": None, "offset": None}


@router.get("/{document_id}/versions/{version_id}", response_model=DocumentVersionRead)
def get_version(document_id: str, version_id: str, db: Session = Depends(get_db)):
    return doc_service.documents.get_version(db, document_id, version_id)


@router.post(
    "/{document_id}/versions/{version_id}/restore",
    response_model=DocumentVersionRead,
    status_code=status.HTTP_201_CREATED,
)
def restore_version(
    document_id: str,
    version_id: str,
    payload: VersionRestoreRequest | None = None,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    notes = payload.notes if payload else None
    return doc_service.documents.restore_version(
        db, document_id, version_id, actor_id, notes=notes
    )
