import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from archflow.db import Base


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AuthorityStatus(enum.Enum):
    active = "active"
    inactive = "inactive"
    maintenance = "maintenance"


class SubmissionStatus(enum.Enum):
    draft = "draft"
    submitted = "submitted"
    under_review = "under_review"
    approved = "approved"
    rejected = "rejected"
    revision_needed = "revision_needed"
    withdrawn = "withdrawn"
    expired = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        SubmissionStatus.approved,
        SubmissionStatus.rejected,
        SubmissionStatus.withdrawn,
        SubmissionStatus.expired,
    }
)

# Transitions driven by the authority (push via update_status or pull via sync).
AUTHORITY_TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.draft: frozenset(),
    SubmissionStatus.submitted: frozenset({SubmissionStatus.under_review}),
    SubmissionStatus.under_review: frozenset(
        {
            SubmissionStatus.approved,
            SubmissionStatus.rejected,
            SubmissionStatus.revision_needed,
        }
    ),
    SubmissionStatus.revision_needed: frozenset(),
    SubmissionStatus.approved: frozenset(),
    SubmissionStatus.rejected: frozenset(),
    SubmissionStatus.withdrawn: frozenset(),
    SubmissionStatus.expired: frozenset(),
}

SUBMITTABLE_STATUSES = frozenset(
    {SubmissionStatus.draft, SubmissionStatus.revision_needed}
)


class SubmissionType(enum.Enum):
    new = "new"
    amendment = "amendment"
    renewal = "renewal"
    variation = "variation"
    extension = "extension"


class SubmissionPriority(enum.Enum):
    low = "low"
    normal = "normal"
    high = "high"
    urgent = "urgent"


class FeeType(enum.Enum):
    base = "base"
    processing = "processing"
    late = "late"
    expedite = "expedite"
    sst = "sst"


class FeeStatus(enum.Enum):
    unpaid = "unpaid"
    paid = "paid"
    waived = "waived"


# ---------------------------------------------------------------------------
# Reference data: Authorities
# ---------------------------------------------------------------------------


class Authority(Base):
    __tablename__ = "authorities"
    __table_args__ = (UniqueConstraint("code", name="uq_authorities_code"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    code: Mapped[str] = mapped_column(String(40), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    jurisdiction: Mapped[str] = mapped_column(String(255), nullable=False)
    state_code: Mapped[str | None] = mapped_column(String(10))
    api_endpoint: Mapped[str | None] = mapped_column(String(2048))
    status: Mapped[AuthorityStatus] = mapped_column(
        Enum(AuthorityStatus), default=AuthorityStatus.active
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    categories = relationship(
        "SubmissionCategory",
        back_populates="authority",
        order_by="SubmissionCategory.code",
    )


# ---------------------------------------------------------------------------
# Reference data: Submission Categories
# ---------------------------------------------------------------------------


class SubmissionCategory(Base):
    __tablename__ = "submission_categories"
    __table_args__ = (
        UniqueConstraint(
            "authority_id", "code", name="uq_submission_categories_authority_code"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    authority_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("authorities.id"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(40), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    fee_schedule: Mapped[dict] = mapped_column(JSON, nullable=False)
    typical_processing_days: Mapped[int] = mapped_column(Integer, nullable=False)
    max_processing_days: Mapped[int] = mapped_column(Integer, nullable=False)
    resubmission_window_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=30
    )
    required_document_types: Mapped[list] = mapped_column(JSON, default=list)
    required_fields: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    authority = relationship("Authority", back_populates="categories")


# ---------------------------------------------------------------------------
# Submissions (never hard-deleted; row_version guards every transition)
# ---------------------------------------------------------------------------


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("internal_reference", name="uq_submissions_internal_reference"),
        Index("ix_submissions_project_id", "project_id"),
        Index("ix_submissions_status", "status"),
        Index("ix_submissions_authority_id", "authority_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    authority_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("authorities.id"), nullable=False
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("submission_categories.id"), nullable=False
    )
    internal_reference: Mapped[str] = mapped_column(String(40), nullable=False)
    submission_number: Mapped[str | None] = mapped_column(String(120))
    submission_type: Mapped[SubmissionType] = mapped_column(
        Enum(SubmissionType), default=SubmissionType.new
    )
    priority: Mapped[SubmissionPriority] = mapped_column(
        Enum(SubmissionPriority), default=SubmissionPriority.normal
    )
    status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus), default=SubmissionStatus.draft
    )

    site_address: Mapped[str] = mapped_column(String(500), nullable=False)
    building_use: Mapped[str] = mapped_column(String(120), nullable=False)
    land_area: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    built_up_area: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    details: Mapped[dict | None] = mapped_column(JSON)
    lodgement_deadline: Mapped[date | None] = mapped_column(Date)
    expedite: Mapped[bool] = mapped_column(Boolean, default=False)

    # submission_date is written once, on the first transition into submitted.
    submission_date: Mapped[date | None] = mapped_column(Date)
    last_submitted_date: Mapped[date | None] = mapped_column(Date)
    expected_completion_date: Mapped[date | None] = mapped_column(Date)
    expiry_date: Mapped[date | None] = mapped_column(Date)
    decision_date: Mapped[date | None] = mapped_column(Date)

    created_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    last_updated_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __mapper_args__ = {"version_id_col": row_version}

    authority = relationship("Authority")
    category = relationship("SubmissionCategory")
    fees = relationship(
        "SubmissionFee",
        back_populates="submission",
        order_by="SubmissionFee.position",
    )
    status_history = relationship(
        "SubmissionStatusChange",
        back_populates="submission",
        order_by="SubmissionStatusChange.sequence",
    )
    documents = relationship("Document", back_populates="submission")

    @property
    def is_overdue(self) -> bool:
        from archflow.services.calendar import is_overdue

        return is_overdue(self, datetime.now(timezone.utc).date())

    @property
    def total_amount(self) -> Decimal:
        return sum(
            (fee.amount for fee in self.fees if fee.status != FeeStatus.waived),
            Decimal("0.00"),
        )

    @property
    def outstanding_amount(self) -> Decimal:
        return sum(
            (fee.amount for fee in self.fees if fee.status == FeeStatus.unpaid),
            Decimal("0.00"),
        )


# ---------------------------------------------------------------------------
# Submission Fees (amount fixed at creation; only status moves)
# ---------------------------------------------------------------------------


class SubmissionFee(Base):
    __tablename__ = "submission_fees"
    __table_args__ = (
        UniqueConstraint("submission_id", "fee_type", name="uq_submission_fees_type"),
        Index("ix_submission_fees_submission_id", "submission_id"),
        Index("ix_submission_fees_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    submission_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("submissions.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    fee_type: Mapped[FeeType] = mapped_column(Enum(FeeType), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    calculation: Mapped[str | None] = mapped_column(Text)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[FeeStatus] = mapped_column(
        Enum(FeeStatus), default=FeeStatus.unpaid
    )
    payment_reference: Mapped[str | None] = mapped_column(String(120))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    waived_reason: Mapped[str | None] = mapped_column(Text)
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __mapper_args__ = {"version_id_col": row_version}

    submission = relationship("Submission", back_populates="fees")


# ---------------------------------------------------------------------------
# Submission Status History (immutable audit trail, no updated_at)
# ---------------------------------------------------------------------------


class SubmissionStatusChange(Base):
    __tablename__ = "submission_status_changes"
    __table_args__ = (
        UniqueConstraint(
            "submission_id", "sequence", name="uq_submission_status_changes_seq"
        ),
        Index("ix_submission_status_changes_submission_id", "submission_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    submission_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("submissions.id"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_status: Mapped[SubmissionStatus | None] = mapped_column(
        Enum(SubmissionStatus)
    )
    new_status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus), nullable=False
    )
    changed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    comments: Mapped[str | None] = mapped_column(Text)
    authority_reference: Mapped[str | None] = mapped_column(String(120))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    submission = relationship("Submission", back_populates="status_history")


# ---------------------------------------------------------------------------
# Authority API call log (one row per gateway request, append-only)
# ---------------------------------------------------------------------------


class AuthorityApiLog(Base):
    __tablename__ = "authority_api_logs"
    __table_args__ = (
        Index("ix_authority_api_logs_submission_id", "submission_id"),
        Index("ix_authority_api_logs_authority_id", "authority_id"),
        Index("ix_authority_api_logs_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    authority_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("authorities.id"), nullable=False
    )
    submission_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("submissions.id")
    )
    operation_type: Mapped[str] = mapped_column(String(60), nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    endpoint: Mapped[str | None] = mapped_column(String(2048))
    response_status_code: Mapped[int | None] = mapped_column(Integer)
    response_body: Mapped[str | None] = mapped_column(Text)
    execution_time_ms: Mapped[int | None] = mapped_column(Integer)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text)
    initiated_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    authority = relationship("Authority")
