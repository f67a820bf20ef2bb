import uuid

import pytest

from archflow.exceptions import (
    InvalidStateTransitionError,
    InvalidStepStateError,
    NotFoundError,
    ValidationError,
)
from archflow.models import (
    DocumentStatus,
    StepAction,
    WorkflowPolicy,
    WorkflowStatus,
    WorkflowStepStatus,
    WorkflowTargetType,
)
from archflow.schemas.workflow import WorkflowCreate, WorkflowStepCreate
from archflow.services.document import documents
from archflow.services.submission import submissions
from archflow.services.workflow import workflows


def _start(db_session, document, actor_id, steps=3, **kwargs):
    return workflows.start(
        db_session,
        WorkflowCreate(
            name="Permit drawing review",
            target_type=WorkflowTargetType.document,
            target_id=document.id,
            started_by=actor_id,
            steps=[WorkflowStepCreate(assignee_id=uuid.uuid4()) for _ in range(steps)],
            **kwargs,
        ),
    )


class TestStartWorkflow:
    def test_start_puts_document_under_review(
        self, db_session, make_document, actor_id
    ) -> None:
        doc = make_document()
        workflow = _start(db_session, doc, actor_id)
        assert workflow.status == WorkflowStatus.in_progress
        assert [s.step_number for s in workflow.steps] == [1, 2, 3]
        assert all(s.status == WorkflowStepStatus.pending for s in workflow.steps)
        assert documents.get(db_session, doc.id).status == DocumentStatus.under_review

    def test_requires_steps(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        with pytest.raises(ValidationError):
            _start(db_session, doc, actor_id, steps=0)

    def test_unknown_target(self, db_session, actor_id) -> None:
        with pytest.raises(NotFoundError):
            workflows.start(
                db_session,
                WorkflowCreate(
                    name="Review",
                    target_type=WorkflowTargetType.submission,
                    target_id=uuid.uuid4(),
                    started_by=actor_id,
                    steps=[WorkflowStepCreate(assignee_id=uuid.uuid4())],
                ),
            )

    def test_one_running_workflow_per_target(
        self, db_session, make_document, actor_id
    ) -> None:
        doc = make_document()
        first = _start(db_session, doc, actor_id)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            _start(db_session, doc, actor_id)
        assert exc_info.value.details == {"workflow_id": str(first.id)}

    def test_archived_document(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        documents.archive(db_session, doc.id, actor_id)
        with pytest.raises(InvalidStateTransitionError):
            _start(db_session, doc, actor_id)

    def test_terminal_submission(self, db_session, submission, actor_id) -> None:
        submissions.withdraw(db_session, submission.id, actor_id)
        with pytest.raises(InvalidStateTransitionError):
            workflows.start(
                db_session,
                WorkflowCreate(
                    name="Review",
                    target_type=WorkflowTargetType.submission,
                    target_id=submission.id,
                    started_by=actor_id,
                    steps=[WorkflowStepCreate(assignee_id=uuid.uuid4())],
                ),
            )


class TestSequentialPolicy:
    def test_all_approved(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        workflow = _start(db_session, doc, actor_id)
        step_ids = [s.id for s in workflow.steps]

        for step_id in step_ids[:-1]:
            workflows.complete_step(db_session, step_id, StepAction.approved, actor_id)
            assert workflows.get(db_session, workflow.id).status == (
                WorkflowStatus.in_progress
            )
        workflows.complete_step(
            db_session, step_ids[-1], StepAction.approved, actor_id, "Looks good"
        )

        workflow = workflows.get(db_session, workflow.id)
        assert workflow.status == WorkflowStatus.approved
        assert workflow.completed_steps == 3
        assert workflow.completed_by == actor_id
        assert documents.get(db_session, doc.id).status == DocumentStatus.approved

    def test_out_of_order_rejected(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        workflow = _start(db_session, doc, actor_id)
        with pytest.raises(InvalidStepStateError) as exc_info:
            workflows.complete_step(
                db_session, workflow.steps[2].id, StepAction.approved, actor_id
            )
        assert exc_info.value.details == {"pending_steps": [1, 2]}

    def test_reject_skips_remaining(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        workflow = _start(db_session, doc, actor_id)
        workflows.complete_step(
            db_session, workflow.steps[0].id, StepAction.rejected, actor_id, "Wrong scale"
        )

        workflow = workflows.get(db_session, workflow.id)
        assert workflow.status == WorkflowStatus.rejected
        assert workflow.outcome_comments == "Wrong scale"
        assert [s.status for s in workflow.steps] == [
            WorkflowStepStatus.completed,
            WorkflowStepStatus.skipped,
            WorkflowStepStatus.skipped,
        ]
        assert documents.get(db_session, doc.id).status == DocumentStatus.rejected

    def test_return_for_revision(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        workflow = _start(db_session, doc, actor_id, steps=2)
        workflows.complete_step(db_session, workflow.steps[0].id, "approved", actor_id)
        workflows.complete_step(db_session, workflow.steps[1].id, "returned", actor_id)

        workflow = workflows.get(db_session, workflow.id)
        assert workflow.status == WorkflowStatus.returned_for_revision
        assert documents.get(db_session, doc.id).status == DocumentStatus.draft

    def test_step_completed_once(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        workflow = _start(db_session, doc, actor_id)
        first = workflow.steps[0].id
        workflows.complete_step(db_session, first, StepAction.approved, actor_id)
        with pytest.raises(InvalidStepStateError):
            workflows.complete_step(db_session, first, StepAction.rejected, actor_id)

    def test_finished_workflow_is_closed(
        self, db_session, make_document, actor_id
    ) -> None:
        doc = make_document()
        workflow = _start(db_session, doc, actor_id)
        workflows.complete_step(
            db_session, workflow.steps[0].id, StepAction.rejected, actor_id
        )
        with pytest.raises(InvalidStepStateError):
            workflows.complete_step(
                db_session, workflow.steps[1].id, StepAction.approved, actor_id
            )

    def test_unknown_step(self, db_session) -> None:
        with pytest.raises(NotFoundError):
            workflows.complete_step(db_session, uuid.uuid4(), StepAction.approved)


class TestAnyRejectPolicy:
    def test_steps_in_any_order(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        workflow = _start(db_session, doc, actor_id, policy=WorkflowPolicy.any_reject)
        steps = [s.id for s in workflow.steps]

        workflows.complete_step(db_session, steps[2], StepAction.approved, actor_id)
        workflows.complete_step(db_session, steps[0], StepAction.approved, actor_id)
        assert workflows.get(db_session, workflow.id).status == WorkflowStatus.in_progress
        workflows.complete_step(db_session, steps[1], StepAction.approved, actor_id)
        assert workflows.get(db_session, workflow.id).status == WorkflowStatus.approved

    def test_single_rejection_ends_workflow(
        self, db_session, make_document, actor_id
    ) -> None:
        doc = make_document()
        workflow = _start(db_session, doc, actor_id, policy=WorkflowPolicy.any_reject)
        workflows.complete_step(
            db_session, workflow.steps[1].id, StepAction.rejected, actor_id
        )
        assert workflows.get(db_session, workflow.id).status == WorkflowStatus.rejected


class TestStatusAndCancel:
    def test_status_summary(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        workflow = _start(db_session, doc, actor_id)
        workflows.complete_step(
            db_session, workflow.steps[0].id, StepAction.approved, actor_id
        )

        summary = workflows.status(db_session, workflow.id)
        assert summary["status"] == WorkflowStatus.in_progress
        assert summary["total_steps"] == 3
        assert summary["approved_steps"] == 1
        assert summary["pending_steps"] == 2
        assert summary["current_step"].step_number == 2

    def test_cancel_restores_document(
        self, db_session, make_document, actor_id
    ) -> None:
        doc = make_document()
        workflow = _start(db_session, doc, actor_id)
        cancelled = workflows.cancel(db_session, workflow.id, actor_id, "Superseded")

        assert cancelled.status == WorkflowStatus.cancelled
        assert all(s.status == WorkflowStepStatus.skipped for s in cancelled.steps)
        assert documents.get(db_session, doc.id).status == DocumentStatus.draft
        assert workflows.status(db_session, workflow.id)["current_step"] is None

        with pytest.raises(InvalidStateTransitionError):
            workflows.cancel(db_session, workflow.id, actor_id)

    def test_list_by_target(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        other = make_document()
        workflow = _start(db_session, doc, actor_id)
        _start(db_session, other, actor_id)

        items = workflows.list(
            db_session, "document", str(doc.id), None, "created_at", "asc", 50, 0
        )
        assert [w.id for w in items] == [workflow.id]
        running = workflows.list(
            db_session, None, None, "in_progress", "created_at", "asc", 50, 0
        )
        assert len(running) == 2
