from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from archflow.api.deps import get_actor_id, get_db
from archflow.schemas.common import ListResponse
from archflow.schemas.workflow import (
    StepCompleteRequest,
    WorkflowCancelRequest,
    WorkflowCreate,
    WorkflowRead,
    WorkflowStatusRead,
    WorkflowStepRead,
)
from archflow.services import workflow as workflow_service

router = APIRouter(tags=["workflows"])


@router.post(
    "/workflows", response_model=WorkflowRead, status_code=status.HTTP_201_CREATED
)
def start_workflow(
    payload: WorkflowCreate,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    if payload.started_by is None:
        payload = payload.model_copy(update={"started_by": actor_id})
    return workflow_service.workflows.start(db, payload)


@router.get("/workflows", response_model=ListResponse[WorkflowRead])
def list_workflows(
    target_type: str | None = None,
    target_id: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return workflow_service.workflows.list_response(
        db, target_type, target_id, status_filter, order_by, order_dir, limit, offset
    )


@router.get("/workflows/{workflow_id}", response_model=WorkflowRead)
def get_workflow(workflow_id: str, db: Session = Depends(get_db)):
    return workflow_service.workflows.get(db, workflow_id)


@router.get("/workflows/{workflow_id}/status", response_model=WorkflowStatusRead)
def workflow_status(workflow_id: str, db: Session = Depends(get_db)):
    return workflow_service.workflows.status(db, workflow_id)


@router.post("/workflows/{workflow_id}/cancel", response_model=WorkflowRead)
def cancel_workflow(
    workflow_id: str,
    payload: WorkflowCancelRequest | None = None,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    reason = payload.reason if payload else None
    return workflow_service.workflows.cancel(db, workflow_id, actor_id, reason)


@router.post("/workflow-steps/{step_id}/complete", response_model=WorkflowStepRead)
def complete_step(
    step_id: str,
    payload: StepCompleteRequest,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    return workflow_service.workflows.complete_step(
        db, step_id, payload.action, actor_id=actor_id, comments=payload.comments
    )
