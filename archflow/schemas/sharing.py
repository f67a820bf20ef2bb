from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from archflow.models.document import SharePermission, ShareStatus


class DocumentShareCreate(BaseModel):
    recipient_user_id: UUID | None = None
    recipient_email: str | None = Field(default=None, max_length=320)
    permission_level: SharePermission = SharePermission.view
    expires_at: datetime | None = None
    password: str | None = Field(default=None, min_length=1)
    shared_by: UUID | None = None


class DocumentShareRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    shared_by: UUID
    recipient_user_id: UUID | None = None
    recipient_email: str | None = None
    permission_level: SharePermission
    share_token: str
    password_protected: bool
    expires_at: datetime | None = None
    status: ShareStatus
    revoked_at: datetime | None = None
    revoked_by: UUID | None = None
    revoke_reason: str | None = None
    created_at: datetime


class ShareRevokeRequest(BaseModel):
    reason: str | None = None


class ShareAccessRequest(BaseModel):
    password: str | None = None


class ShareAccessRead(BaseModel):
    share_id: UUID
    document_id: UUID
    permission_level: SharePermission
    expires_at: datetime | None = None
