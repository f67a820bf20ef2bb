import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
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


class WorkflowPolicy(enum.Enum):
    sequential = "sequential"
    any_reject = "any_reject"


class WorkflowTargetType(enum.Enum):
    document = "document"
    submission = "submission"


class WorkflowType(enum.Enum):
    review = "review"
    approval = "approval"
    internal_review = "internal_review"


class WorkflowStatus(enum.Enum):
    in_progress = "in_progress"
    approved = "approved"
    rejected = "rejected"
    returned_for_revision = "returned_for_revision"
    cancelled = "cancelled"


class WorkflowStepType(enum.Enum):
    review = "review"
    approval = "approval"
    sign_off = "sign_off"


class WorkflowStepStatus(enum.Enum):
    pending = "pending"
    completed = "completed"
    skipped = "skipped"


class StepAction(enum.Enum):
    approved = "approved"
    rejected = "rejected"
    returned = "returned"


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


class Workflow(Base):
    __tablename__ = "workflows"
    __table_args__ = (
        Index("ix_workflows_target", "target_type", "target_id"),
        Index("ix_workflows_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    workflow_type: Mapped[WorkflowType] = mapped_column(
        Enum(WorkflowType), default=WorkflowType.approval
    )
    policy: Mapped[WorkflowPolicy] = mapped_column(
        Enum(WorkflowPolicy), default=WorkflowPolicy.sequential
    )
    target_type: Mapped[WorkflowTargetType] = mapped_column(
        Enum(WorkflowTargetType), nullable=False
    )
    target_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    status: Mapped[WorkflowStatus] = mapped_column(
        Enum(WorkflowStatus), default=WorkflowStatus.in_progress
    )
    completed_steps: Mapped[int] = mapped_column(Integer, default=0)
    due_date: Mapped[date | None] = mapped_column(Date)
    started_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    outcome_comments: Mapped[str | None] = mapped_column(Text)
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

    steps = relationship(
        "WorkflowStep",
        back_populates="workflow",
        order_by="WorkflowStep.step_number",
    )


# ---------------------------------------------------------------------------
# Workflow Steps
# ---------------------------------------------------------------------------


class WorkflowStep(Base):
    __tablename__ = "workflow_steps"
    __table_args__ = (
        UniqueConstraint("workflow_id", "step_number", name="uq_workflow_steps_number"),
        Index("ix_workflow_steps_workflow_id", "workflow_id"),
        Index("ix_workflow_steps_assignee_id", "assignee_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    workflow_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workflows.id"), nullable=False
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    step_type: Mapped[WorkflowStepType] = mapped_column(
        Enum(WorkflowStepType), default=WorkflowStepType.approval
    )
    assignee_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    status: Mapped[WorkflowStepStatus] = mapped_column(
        Enum(WorkflowStepStatus), default=WorkflowStepStatus.pending
    )
    action: Mapped[StepAction | None] = mapped_column(Enum(StepAction))
    comments: Mapped[str | None] = mapped_column(Text)
    completed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    due_date: Mapped[date | None] = mapped_column(Date)
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

    workflow = relationship("Workflow", back_populates="steps")

    @property
    def is_terminal(self) -> bool:
        return self.status != WorkflowStepStatus.pending
