from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from archflow.models.submission import AuthorityStatus


# ---------------------------------------------------------------------------
# SubmissionCategory
# ---------------------------------------------------------------------------


class SubmissionCategoryBase(BaseModel):
    code: str = Field(min_length=1, max_length=40)
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    fee_schedule: dict[str, Any]
    typical_processing_days: int = Field(ge=0)
    max_processing_days: int = Field(ge=0)
    resubmission_window_days: int = Field(default=30, ge=0)
    required_document_types: list[str] = []
    required_fields: list[str] = []
    is_active: bool = True


class SubmissionCategoryImport(SubmissionCategoryBase):
    pass


class SubmissionCategoryRead(SubmissionCategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    authority_id: UUID
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Authority
# ---------------------------------------------------------------------------


class AuthorityBase(BaseModel):
    code: str = Field(min_length=1, max_length=40)
    name: str = Field(min_length=1, max_length=255)
    jurisdiction: str = Field(min_length=1, max_length=255)
    state_code: str | None = Field(default=None, max_length=10)
    api_endpoint: str | None = Field(default=None, max_length=2048)
    status: AuthorityStatus = AuthorityStatus.active


class AuthorityImport(AuthorityBase):
    categories: list[SubmissionCategoryImport] = []


class AuthorityRead(AuthorityBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime


class ReferenceDataImport(BaseModel):
    authorities: list[AuthorityImport]


class ReferenceDataImportResult(BaseModel):
    authorities_created: int
    authorities_updated: int
    categories_created: int
    categories_updated: int


# ---------------------------------------------------------------------------
# Authority API log
# ---------------------------------------------------------------------------


class AuthorityApiLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    authority_id: UUID
    submission_id: UUID | None = None
    operation_type: str
    method: str
    endpoint: str | None = None
    response_status_code: int | None = None
    response_body: str | None = None
    execution_time_ms: int | None = None
    success: bool
    error_message: str | None = None
    initiated_by: UUID | None = None
    created_at: datetime
