from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from archflow.api.deps import get_actor_id, get_db
from archflow.schemas.common import ListResponse
from archflow.schemas.sharing import (
    DocumentShareCreate,
    DocumentShareRead,
    ShareAccessRead,
    ShareAccessRequest,
    ShareRevokeRequest,
)
from archflow.services import sharing as sharing_service

router = APIRouter(tags=["shares"])


def _access_response(share) -> dict:
    return {
        "share_id": share.id,
        "document_id": share.document_id,
        "permission_level": share.permission_level,
        "expires_at": share.expires_at,
    }


@router.post(
    "/documents/{document_id}/shares",
    response_model=DocumentShareRead,
    status_code=status.HTTP_201_CREATED,
)
def grant_share(
    document_id: str,
    payload: DocumentShareCreate,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    if payload.shared_by is None:
        payload = payload.model_copy(update={"shared_by": actor_id})
    return sharing_service.document_shares.grant(db, document_id, payload)


@router.get(
    "/documents/{document_id}/shares",
    response_model=ListResponse[DocumentShareRead],
)
def list_shares(
    document_id: str,
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return sharing_service.document_shares.list_response(
        db, document_id, status_filter, limit, offset
    )


@router.get("/shares/{share_id}", response_model=DocumentShareRead)
def get_share(share_id: str, db: Session = Depends(get_db)):
    return sharing_service.document_shares.get(db, share_id)


@router.post("/shares/{share_id}/revoke", response_model=DocumentShareRead)
def revoke_share(
    share_id: str,
    payload: ShareRevokeRequest | None = None,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    reason = payload.reason if payload else None
    return sharing_service.document_shares.revoke(db, share_id, actor_id, reason)


@router.post("/shares/{share_id}/access", response_model=ShareAccessRead)
def check_share_access(
    share_id: str,
    payload: ShareAccessRequest | None = None,
    db: Session = Depends(get_db),
):
    password = payload.password if payload else None
    share = sharing_service.document_shares.check_access(db, share_id, password)
    return _access_response(share)


@router.post("/shared/{token}/access", response_model=ShareAccessRead)
def check_token_access(
    token: str,
    payload: ShareAccessRequest | None = None,
    db: Session = Depends(get_db),
):
    password = payload.password if payload else None
    share = sharing_service.document_shares.check_token_access(db, token, password)
    return _access_response(share)
