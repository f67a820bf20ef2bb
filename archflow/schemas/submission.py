from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from archflow.models.submission import (
    FeeStatus,
    FeeType,
    SubmissionPriority,
    SubmissionStatus,
    SubmissionType,
)


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class SubmissionBase(BaseModel):
    project_id: UUID
    authority_id: UUID
    category_id: UUID
    submission_type: SubmissionType = SubmissionType.new
    priority: SubmissionPriority = SubmissionPriority.normal
    # Required fields are checked by the service so every gap is reported at once.
    site_address: str | None = None
    building_use: str | None = None
    land_area: Decimal | None = Field(default=None, ge=0)
    built_up_area: Decimal | None = Field(default=None, ge=0)
    details: dict[str, Any] | None = None
    lodgement_deadline: date | None = None
    expedite: bool = False


class SubmissionCreate(SubmissionBase):
    created_by: UUID | None = None


class SubmissionUpdate(BaseModel):
    priority: SubmissionPriority | None = None
    site_address: str | None = None
    building_use: str | None = None
    land_area: Decimal | None = Field(default=None, ge=0)
    built_up_area: Decimal | None = Field(default=None, ge=0)
    details: dict[str, Any] | None = None
    lodgement_deadline: date | None = None
    expedite: bool | None = None


class SubmissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    authority_id: UUID
    category_id: UUID
    internal_reference: str
    submission_number: str | None = None
    submission_type: SubmissionType
    priority: SubmissionPriority
    status: SubmissionStatus
    site_address: str
    building_use: str
    land_area: Decimal | None = None
    built_up_area: Decimal | None = None
    details: dict[str, Any] | None = None
    lodgement_deadline: date | None = None
    expedite: bool
    submission_date: date | None = None
    last_submitted_date: date | None = None
    expected_completion_date: date | None = None
    expiry_date: date | None = None
    decision_date: date | None = None
    is_overdue: bool
    total_amount: Decimal
    outstanding_amount: Decimal
    created_by: UUID
    last_updated_by: UUID | None = None
    row_version: int
    created_at: datetime
    updated_at: datetime


class SubmitRequest(BaseModel):
    expedite: bool | None = None
    submission_date: date | None = None


class StatusUpdateRequest(BaseModel):
    status: SubmissionStatus
    comments: str | None = None
    submission_number: str | None = Field(default=None, max_length=120)


class WithdrawRequest(BaseModel):
    reason: str | None = None


class SyncRequest(BaseModel):
    timeout_seconds: float | None = Field(default=None, gt=0, le=120)


class FieldProblem(BaseModel):
    field: str
    message: str


class SubmissionValidationRead(BaseModel):
    submission_id: UUID
    status: SubmissionStatus
    ready: bool
    missing_fields: list[FieldProblem]
    missing_document_types: list[str]
    blockers: list[str]


class SubmissionStatsRead(BaseModel):
    total: int
    by_status: dict[str, int]
    pending: int
    overdue: int
    total_fees_paid: Decimal
    average_processing_days: float | None = None


class SubmissionStatusChangeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    submission_id: UUID
    sequence: int
    previous_status: SubmissionStatus | None = None
    new_status: SubmissionStatus
    changed_by: UUID | None = None
    comments: str | None = None
    authority_reference: str | None = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Fees
# ---------------------------------------------------------------------------


class SubmissionFeeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    submission_id: UUID
    position: int
    fee_type: FeeType
    description: str
    calculation: str | None = None
    amount: Decimal
    currency: str
    status: FeeStatus
    payment_reference: str | None = None
    paid_at: datetime | None = None
    waived_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class FeeSummaryRead(BaseModel):
    items: list[SubmissionFeeRead]
    currency: str | None = None
    total_amount: Decimal
    outstanding_amount: Decimal


class FeeQuoteRequest(BaseModel):
    expedite: bool | None = None
    submission_date: date | None = None


class FeeLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fee_type: FeeType
    description: str
    amount: Decimal
    currency: str
    calculation: str


class FeeQuoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fees: list[FeeLineRead]
    currency: str
    total_amount: Decimal


class FeePaymentRequest(BaseModel):
    payment_reference: str = Field(min_length=1, max_length=120)


class FeeWaiveRequest(BaseModel):
    reason: str = Field(min_length=1)
