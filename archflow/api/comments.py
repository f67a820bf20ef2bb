from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from archflow.api.deps import get_actor_id, get_db
from archflow.schemas.collaboration import CommentCreate, CommentRead
from archflow.schemas.common import ListResponse
from archflow.services import collaboration as collab_service

router = APIRouter(tags=["comments"])


@router.post(
    "/documents/{document_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    document_id: str,
    payload: CommentCreate,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    if payload.author_id is None:
        payload = payload.model_copy(update={"author_id": actor_id})
    return collab_service.comments.create(db, document_id, payload)


@router.get(
    "/documents/{document_id}/comments",
    response_model=ListResponse[CommentRead],
)
def list_comments(
    document_id: str,
    parent_id: str | None = None,
    comment_type: str | None = None,
    is_resolved: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return collab_service.comments.list_response(
        db,
        document_id,
        parent_id,
        comment_type,
        is_resolved,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.post("/comments/{comment_id}/resolve", response_model=CommentRead)
def resolve_comment(
    comment_id: str,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    return collab_service.comments.resolve(db, comment_id, actor_id)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: str,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    collab_service.comments.delete(db, comment_id, actor_id)
