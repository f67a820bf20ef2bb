from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from archflow.api.deps import get_actor_id, get_db
from archflow.schemas.authority import (
    AuthorityApiLogRead,
    AuthorityRead,
    ReferenceDataImport,
    ReferenceDataImportResult,
    SubmissionCategoryRead,
)
from archflow.schemas.common import ListResponse
from archflow.services import authority as authority_service

router = APIRouter(prefix="/authorities", tags=["authorities"])


@router.get("", response_model=ListResponse[AuthorityRead])
def list_authorities(
    status_filter: str | None = Query(default=None, alias="status"),
    state_code: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return authority_service.authorities.list_response(
        db, status_filter, state_code, limit, offset
    )


@router.post(
    "/import",
    response_model=ReferenceDataImportResult,
    dependencies=[Depends(get_actor_id)],
)
def import_reference_data(payload: ReferenceDataImport, db: Session = Depends(get_db)):
    return authority_service.authorities.import_reference_data(db, payload)


@router.get("/{authority_id}", response_model=AuthorityRead)
def get_authority(authority_id: str, db: Session = Depends(get_db)):
    return authority_service.authorities.get(db, authority_id)


@router.get(
    "/{authority_id}/categories",
    response_model=ListResponse[SubmissionCategoryRead],
)
def list_categories(
    authority_id: str,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
):
    items = authority_service.authorities.list_categories(
        db, authority_id, include_inactive=include_inactive
    )
    return {"items": items, "count": len(items), "limit": None, "offset": None}


@router.get(
    "/{authority_id}/api-logs", response_model=ListResponse[AuthorityApiLogRead]
)
def list_api_logs(
    authority_id: str,
    success: bool | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    authority = authority_service.authorities.get(db, authority_id)
    items = authority_service.authorities.list_api_logs(
        db, authority.id, None, success, limit, offset
    )
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}
