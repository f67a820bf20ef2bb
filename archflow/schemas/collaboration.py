from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from archflow.models.document import CommentType


class CommentBase(BaseModel):
    body: str = Field(min_length=1)
    parent_id: UUID | None = None
    comment_type: CommentType = CommentType.general
    page_number: int | None = Field(default=None, ge=1)
    x_position: float | None = None
    y_position: float | None = None


class CommentCreate(CommentBase):
    author_id: UUID | None = None


class CommentRead(CommentBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    author_id: UUID
    is_resolved: bool
    resolved_by: UUID | None = None
    resolved_at: datetime | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
