from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from archflow.exceptions import NotFoundError, ValidationError
from archflow.models.document import CommentType, Document, DocumentComment
from archflow.schemas.collaboration import CommentCreate
from archflow.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_enum,
    coerce_uuid,
    utcnow,
)
from archflow.services.event import EventType, publish_event
from archflow.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class Comments(ListResponseMixin):
    @staticmethod
    def create(db: Session, document_id: str, payload: CommentCreate) -> DocumentComment:
        document = db.get(Document, coerce_uuid(document_id))
        if not document:
            raise NotFoundError("Document not found")
        if payload.author_id is None:
            raise ValidationError(
                "Author is required",
                details=[{"field": "author_id", "message": "is required"}],
            )
        if payload.parent_id is not None:
            parent = db.get(DocumentComment, coerce_uuid(payload.parent_id))
            if not parent or not parent.is_active:
                raise NotFoundError("Parent comment not found")
            if parent.document_id != document.id:
                raise ValidationError(
                    "Parent comment belongs to a different document",
                    details=[{"field": "parent_id", "message": "different document"}],
                )

        comment = DocumentComment(document_id=document.id, **payload.model_dump())
        db.add(comment)
        db.commit()
        db.refresh(comment)
        logger.info("Created comment %s", comment.id)
        publish_event(
            EventType.comment_created,
            entity_type="comment",
            entity_id=comment.id,
            actor_id=comment.author_id,
            document_id=comment.document_id,
            payload={"comment_type": comment.comment_type.value},
        )
        return comment

    @staticmethod
    def get(db: Session, comment_id: str) -> DocumentComment:
        comment = db.get(DocumentComment, coerce_uuid(comment_id))
        if not comment or not comment.is_active:
            raise NotFoundError("Comment not found")
        return comment

    @staticmethod
    def list(
        db: Session,
        document_id: str,
        parent_id: str | None,
        comment_type: str | None,
        is_resolved: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[DocumentComment]:
        query = db.query(DocumentComment).filter(
            DocumentComment.document_id == coerce_uuid(document_id),
            DocumentComment.is_active.is_(True),
        )
        if parent_id is not None:
            query = query.filter(DocumentComment.parent_id == coerce_uuid(parent_id))
        if comment_type is not None:
            comment_type = coerce_enum(CommentType, comment_type, "comment_type")
            query = query.filter(DocumentComment.comment_type == comment_type)
        if is_resolved is not None:
            query = query.filter(DocumentComment.is_resolved == is_resolved)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": DocumentComment.created_at,
                "page_number": DocumentComment.page_number,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def resolve(db: Session, comment_id: str, actor_id) -> DocumentComment:
        comment = Comments.get(db, comment_id)
        # Resolution is one-way; a second resolve keeps the first resolver.
        if comment.is_resolved:
            return comment
        comment.is_resolved = True
        comment.resolved_by = coerce_uuid(actor_id)
        comment.resolved_at = utcnow()
        db.commit()
        db.refresh(comment)
        logger.info("Resolved comment %s", comment.id)
        publish_event(
            EventType.comment_resolved,
            entity_type="comment",
            entity_id=comment.id,
            actor_id=actor_id,
            document_id=comment.document_id,
        )
        return comment

    @staticmethod
    def delete(db: Session, comment_id: str, actor_id=None) -> None:
        comment = Comments.get(db, comment_id)
        comment.is_active = False
        db.commit()
        logger.info("Soft-deleted comment %s", comment_id)
        publish_event(
            EventType.comment_deleted,
            entity_type="comment",
            entity_id=comment.id,
            actor_id=actor_id,
            document_id=comment.document_id,
        )


comments = Comments()
