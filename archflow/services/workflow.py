from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from archflow.exceptions import (
    InvalidStateTransitionError,
    InvalidStepStateError,
    NotFoundError,
    ValidationError,
)
from archflow.models.document import Document, DocumentStatus
from archflow.models.submission import Submission
from archflow.models.workflow import (
    StepAction,
    Workflow,
    WorkflowPolicy,
    WorkflowStatus,
    WorkflowStep,
    WorkflowStepStatus,
    WorkflowTargetType,
    WorkflowType,
)
from archflow.schemas.workflow import WorkflowCreate
from archflow.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_enum,
    coerce_uuid,
    commit_or_conflict,
    utcnow,
)
from archflow.services.event import EventType, publish_event
from archflow.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_OUTCOME_BY_ACTION = {
    StepAction.rejected: WorkflowStatus.rejected,
    StepAction.returned: WorkflowStatus.returned_for_revision,
}

_DOCUMENT_STATUS_BY_OUTCOME = {
    WorkflowStatus.approved: DocumentStatus.approved,
    WorkflowStatus.rejected: DocumentStatus.rejected,
    WorkflowStatus.returned_for_revision: DocumentStatus.draft,
    WorkflowStatus.cancelled: DocumentStatus.draft,
}


def _get_workflow(db: Session, workflow_id) -> Workflow:
    workflow = db.get(Workflow, coerce_uuid(workflow_id))
    if not workflow:
        raise NotFoundError("Workflow not found")
    return workflow


def _current_step(workflow: Workflow) -> WorkflowStep | None:
    for step in workflow.steps:
        if step.status == WorkflowStepStatus.pending:
            return step
    return None


def _finish(
    db: Session,
    workflow: Workflow,
    outcome: WorkflowStatus,
    actor_id,
    comments: str | None,
) -> None:
    """Close ``workflow`` with ``outcome`` and propagate it to a document target."""
    now = utcnow()
    workflow.status = outcome
    workflow.completed_at = now
    workflow.completed_by = coerce_uuid(actor_id)
    workflow.outcome_comments = comments
    for step in workflow.steps:
        if step.status == WorkflowStepStatus.pending:
            step.status = WorkflowStepStatus.skipped
    if workflow.target_type == WorkflowTargetType.document:
        document = db.get(Document, workflow.target_id)
        if document is not None and document.status == DocumentStatus.under_review:
            document.status = _DOCUMENT_STATUS_BY_OUTCOME[outcome]


def in_progress_workflows(db: Session, submission: Submission) -> list[Workflow]:
    """Running workflows on a submission or on any document attached to it."""
    document_ids = select(Document.id).where(Document.submission_id == submission.id)
    stmt = (
        select(Workflow)
        .where(Workflow.status == WorkflowStatus.in_progress)
        .where(
            or_(
                (Workflow.target_type == WorkflowTargetType.submission)
                & (Workflow.target_id == submission.id),
                (Workflow.target_type == WorkflowTargetType.document)
                & (Workflow.target_id.in_(document_ids)),
            )
        )
        .order_by(Workflow.created_at.asc())
    )
    return db.scalars(stmt).all()


def latest_internal_review(db: Session, submission_id) -> Workflow | None:
    stmt = (
        select(Workflow)
        .where(Workflow.target_type == WorkflowTargetType.submission)
        .where(Workflow.target_id == coerce_uuid(submission_id))
        .where(Workflow.workflow_type == WorkflowType.internal_review)
        .order_by(Workflow.created_at.desc())
        .limit(1)
    )
    return db.scalars(stmt).first()


def cancel_workflows(
    db: Session, workflows: list[Workflow], actor_id, reason: str | None = None
) -> None:
    """Cancel ``workflows`` inside the caller's transaction; does not commit."""
    for workflow in workflows:
        _finish(db, workflow, WorkflowStatus.cancelled, actor_id, reason)


class Workflows(ListResponseMixin):
    @staticmethod
    def start(db: Session, payload: WorkflowCreate) -> Workflow:
        errors = []
        if not payload.steps:
            errors.append({"field": "steps", "message": "at least one step is required"})
        if payload.started_by is None:
            errors.append({"field": "started_by", "message": "is required"})
        if errors:
            raise ValidationError("Invalid workflow", details=errors)

        target_id = coerce_uuid(payload.target_id)
        if payload.target_type == WorkflowTargetType.document:
            target = db.get(Document, target_id)
            if not target:
                raise NotFoundError("Document not found")
            if not target.is_active:
                raise InvalidStateTransitionError("Document is archived")
            if target.status == DocumentStatus.approved:
                raise InvalidStateTransitionError(
                    "Document is already approved; upload a new version first"
                )
        else:
            target = db.get(Submission, target_id)
            if not target:
                raise NotFoundError("Submission not found")
            if target.status.is_terminal:
                raise InvalidStateTransitionError(f"Submission is {target.status.value}")

        running = db.scalars(
            select(Workflow)
            .where(Workflow.target_type == payload.target_type)
            .where(Workflow.target_id == target_id)
            .where(Workflow.status == WorkflowStatus.in_progress)
        ).first()
        if running:
            raise InvalidStateTransitionError(
                "Target already has a workflow in progress",
                details={"workflow_id": str(running.id)},
            )

        # Writing the target row bumps its row_version, so two concurrent
        # starts on the same target cannot both commit.
        if payload.target_type == WorkflowTargetType.document:
            target.status = DocumentStatus.under_review
        else:
            target.last_updated_by = payload.started_by
            flag_modified(target, "last_updated_by")

        workflow = Workflow(
            name=payload.name,
            workflow_type=payload.workflow_type,
            policy=payload.policy,
            target_type=payload.target_type,
            target_id=target_id,
            due_date=payload.due_date,
            started_by=payload.started_by,
        )
        db.add(workflow)
        db.flush()
        for number, step in enumerate(payload.steps, start=1):
            db.add(
                WorkflowStep(
                    workflow_id=workflow.id,
                    step_number=number,
                    step_type=step.step_type,
                    assignee_id=step.assignee_id,
                    due_date=step.due_date,
                )
            )
        commit_or_conflict(db, "Workflow target")
        db.refresh(workflow)
        logger.info(
            "Started workflow %s on %s %s",
            workflow.id,
            workflow.target_type.value,
            workflow.target_id,
        )
        publish_event(
            EventType.workflow_started,
            entity_type="workflow",
            entity_id=workflow.id,
            actor_id=workflow.started_by,
            document_id=(
                workflow.target_id
                if workflow.target_type == WorkflowTargetType.document
                else None
            ),
            submission_id=(
                workflow.target_id
                if workflow.target_type == WorkflowTargetType.submission
                else None
            ),
            payload={"steps": len(payload.steps), "policy": workflow.policy.value},
        )
        return workflow

    @staticmethod
    def get(db: Session, workflow_id: str) -> Workflow:
        return _get_workflow(db, workflow_id)

    @staticmethod
    def list(
        db: Session,
        target_type: str | None,
        target_id: str | None,
        status: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Workflow]:
        stmt = select(Workflow)
        if target_type is not None:
            target_type = coerce_enum(WorkflowTargetType, target_type, "target_type")
            stmt = stmt.where(Workflow.target_type == target_type)
        if target_id is not None:
            stmt = stmt.where(Workflow.target_id == coerce_uuid(target_id))
        if status is not None:
            stmt = stmt.where(
                Workflow.status == coerce_enum(WorkflowStatus, status, "status")
            )
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {"created_at": Workflow.created_at, "due_date": Workflow.due_date},
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def complete_step(
        db: Session,
        step_id: str,
        action: StepAction,
        actor_id=None,
        comments: str | None = None,
    ) -> WorkflowStep:
        step = db.get(WorkflowStep, coerce_uuid(step_id))
        if not step:
            raise NotFoundError("Workflow step not found")
        workflow = step.workflow
        if workflow.status != WorkflowStatus.in_progress:
            raise InvalidStepStateError(
                f"Workflow is {workflow.status.value}",
                details={"workflow_id": str(workflow.id)},
            )
        if step.is_terminal:
            raise InvalidStepStateError(f"Step is already {step.status.value}")
        if workflow.policy == WorkflowPolicy.sequential:
            blocking = [
                s.step_number
                for s in workflow.steps
                if s.step_number < step.step_number and not s.is_terminal
            ]
            if blocking:
                raise InvalidStepStateError(
                    "Earlier steps must be completed first",
                    details={"pending_steps": blocking},
                )

        action = coerce_enum(StepAction, action, "action")
        step.status = WorkflowStepStatus.completed
        step.action = action
        step.comments = comments
        step.completed_by = coerce_uuid(actor_id)
        step.completed_at = utcnow()
        # Always touch the workflow row: two reviewers closing the last two
        # steps concurrently must not both skip the final evaluation.
        workflow.completed_steps = (workflow.completed_steps or 0) + 1

        outcome = _OUTCOME_BY_ACTION.get(action)
        if outcome is None and all(
            s.action == StepAction.approved for s in workflow.steps
        ):
            outcome = WorkflowStatus.approved
        if outcome is not None:
            _finish(db, workflow, outcome, actor_id, comments)

        commit_or_conflict(db, "Workflow")
        db.refresh(step)
        logger.info(
            "Completed step %s of workflow %s with %s", step.id, workflow.id, action.value
        )
        publish_event(
            EventType.workflow_step_completed,
            entity_type="workflow_step",
            entity_id=step.id,
            actor_id=actor_id,
            payload={
                "workflow_id": str(workflow.id),
                "step_number": step.step_number,
                "action": action.value,
            },
        )
        if outcome is not None:
            logger.info("Workflow %s finished as %s", workflow.id, outcome.value)
            publish_event(
                EventType.workflow_completed,
                entity_type="workflow",
                entity_id=workflow.id,
                actor_id=actor_id,
                payload={
                    "status": outcome.value,
                    "target_type": workflow.target_type.value,
                    "target_id": str(workflow.target_id),
                },
            )
        return step

    @staticmethod
    def status(db: Session, workflow_id: str) -> dict:
        workflow = _get_workflow(db, workflow_id)
        steps = workflow.steps
        return {
            "workflow_id": workflow.id,
            "status": workflow.status,
            "policy": workflow.policy,
            "current_step": (
                _current_step(workflow)
                if workflow.status == WorkflowStatus.in_progress
                else None
            ),
            "total_steps": len(steps),
            "approved_steps": sum(1 for s in steps if s.action == StepAction.approved),
            "pending_steps": sum(
                1 for s in steps if s.status == WorkflowStepStatus.pending
            ),
            "skipped_steps": sum(
                1 for s in steps if s.status == WorkflowStepStatus.skipped
            ),
        }

    @staticmethod
    def cancel(
        db: Session, workflow_id: str, actor_id, reason: str | None = None
    ) -> Workflow:
        workflow = _get_workflow(db, workflow_id)
        if workflow.status != WorkflowStatus.in_progress:
            raise InvalidStateTransitionError(
                f"Workflow is already {workflow.status.value}"
            )
        cancel_workflows(db, [workflow], actor_id, reason)
        commit_or_conflict(db, "Workflow")
        db.refresh(workflow)
        logger.info("Cancelled workflow %s", workflow.id)
        publish_event(
            EventType.workflow_cancelled,
            entity_type="workflow",
            entity_id=workflow.id,
            actor_id=actor_id,
            payload={"reason": reason},
        )
        return workflow


workflows = Workflows()
