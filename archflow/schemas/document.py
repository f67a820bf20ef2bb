from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from archflow.models.document import DocumentOwnerType, DocumentStatus


# ---------------------------------------------------------------------------
# Document versions
# ---------------------------------------------------------------------------


class DocumentVersionCreate(BaseModel):
    content_reference: str = Field(min_length=1, max_length=1024)
    file_name: str = Field(min_length=1, max_length=500)
    file_size: int = Field(ge=0)
    mime_type: str = Field(min_length=1, max_length=255)
    checksum_sha256: str | None = Field(default=None, min_length=64, max_length=64)
    notes: str | None = None
    uploaded_by: UUID | None = None


class DocumentVersionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    version_number: int
    revision_label: str
    content_reference: str
    file_name: str
    file_size: int
    mime_type: str
    checksum_sha256: str | None = None
    notes: str | None = None
    restored_from_id: UUID | None = None
    uploaded_by: UUID
    created_at: datetime


class VersionRestoreRequest(BaseModel):
    notes: str | None = None


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentBase(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    document_type: str = Field(min_length=1, max_length=80)
    owner_type: DocumentOwnerType = DocumentOwnerType.standalone
    submission_id: UUID | None = None
    project_id: UUID | None = None
    tags: list[str] | None = None
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata_")


class DocumentCreate(DocumentBase):
    created_by: UUID | None = None
    # First version, uploaded together with the document.
    content_reference: str = Field(min_length=1, max_length=1024)
    file_name: str = Field(min_length=1, max_length=500)
    file_size: int = Field(ge=0)
    mime_type: str = Field(min_length=1, max_length=255)
    checksum_sha256: str | None = Field(default=None, min_length=64, max_length=64)
    notes: str | None = None


class DocumentUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    document_type: str | None = Field(default=None, min_length=1, max_length=80)
    tags: list[str] | None = None
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata_")


class DocumentRead(DocumentBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: DocumentStatus
    current_version_id: UUID | None = None
    version_number: int
    revision_label: str | None = None
    content_reference: str | None = None
    file_name: str | None = None
    file_size: int
    mime_type: str | None = None
    created_by: UUID
    is_active: bool
    row_version: int
    created_at: datetime
    updated_at: datetime
