from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from archflow.models.workflow import (
    StepAction,
    WorkflowPolicy,
    WorkflowStatus,
    WorkflowStepStatus,
    WorkflowStepType,
    WorkflowTargetType,
    WorkflowType,
)


# ---------------------------------------------------------------------------
# WorkflowStep
# ---------------------------------------------------------------------------


class WorkflowStepCreate(BaseModel):
    assignee_id: UUID
    step_type: WorkflowStepType = WorkflowStepType.approval
    due_date: date | None = None


class WorkflowStepRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    workflow_id: UUID
    step_number: int
    step_type: WorkflowStepType
    assignee_id: UUID
    status: WorkflowStepStatus
    action: StepAction | None = None
    comments: str | None = None
    completed_by: UUID | None = None
    completed_at: datetime | None = None
    due_date: date | None = None


class StepCompleteRequest(BaseModel):
    action: StepAction
    comments: str | None = None


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class WorkflowCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    workflow_type: WorkflowType = WorkflowType.approval
    policy: WorkflowPolicy = WorkflowPolicy.sequential
    target_type: WorkflowTargetType
    target_id: UUID
    due_date: date | None = None
    started_by: UUID | None = None
    steps: list[WorkflowStepCreate]


class WorkflowRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    workflow_type: WorkflowType
    policy: WorkflowPolicy
    target_type: WorkflowTargetType
    target_id: UUID
    status: WorkflowStatus
    completed_steps: int
    due_date: date | None = None
    started_by: UUID
    completed_at: datetime | None = None
    completed_by: UUID | None = None
    outcome_comments: str | None = None
    steps: list[WorkflowStepRead] = []
    created_at: datetime
    updated_at: datetime


class WorkflowStatusRead(BaseModel):
    workflow_id: UUID
    status: WorkflowStatus
    policy: WorkflowPolicy
    current_step: WorkflowStepRead | None = None
    total_steps: int
    approved_steps: int
    pending_steps: int
    skipped_steps: int


class WorkflowCancelRequest(BaseModel):
    reason: str | None = None
