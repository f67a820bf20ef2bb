from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from archflow.api.deps import get_actor_id, get_db
from archflow.schemas.authority import AuthorityApiLogRead
from archflow.schemas.common import ListResponse
from archflow.schemas.submission import (
    FeePaymentRequest,
    FeeQuoteRead,
    FeeQuoteRequest,
    FeeSummaryRead,
    FeeWaiveRequest,
    StatusUpdateRequest,
    SubmissionCreate,
    SubmissionFeeRead,
    SubmissionRead,
    SubmissionStatsRead,
    SubmissionStatusChangeRead,
    SubmissionUpdate,
    SubmissionValidationRead,
    SubmitRequest,
    SyncRequest,
    WithdrawRequest,
)
from archflow.services import authority as authority_service
from archflow.services import submission as submission_service

router = APIRouter(tags=["submissions"])


# ------------------------------------------------------------------
# Submission CRUD
# ------------------------------------------------------------------


@router.post(
    "/submissions", response_model=SubmissionRead, status_code=status.HTTP_201_CREATED
)
def create_submission(
    payload: SubmissionCreate,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    if payload.created_by is None:
        payload = payload.model_copy(update={"created_by": actor_id})
    return submission_service.submissions.create(db, payload)


@router.get("/submissions", response_model=ListResponse[SubmissionRead])
def list_submissions(
    project_id: str | None = None,
    authority_id: str | None = None,
    category_id: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    overdue: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return submission_service.submissions.list_response(
        db,
        project_id,
        authority_id,
        category_id,
        status_filter,
        overdue,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.get("/submissions/stats", response_model=SubmissionStatsRead)
def submission_stats(
    project_id: str | None = None,
    authority_id: str | None = None,
    db: Session = Depends(get_db),
):
    return submission_service.submissions.stats(
        db, project_id=project_id, authority_id=authority_id
    )


@router.get("/submissions/{submission_id}", response_model=SubmissionRead)
def get_submission(submission_id: str, db: Session = Depends(get_db)):
    return submission_service.submissions.get(db, submission_id)


@router.patch("/submissions/{submission_id}", response_model=SubmissionRead)
def update_submission(
    submission_id: str,
    payload: SubmissionUpdate,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    return submission_service.submissions.update(db, submission_id, payload, actor_id)


# ------------------------------------------------------------------
# Lifecycle
# ------------------------------------------------------------------


@router.post("/submissions/{submission_id}/submit", response_model=SubmissionRead)
def submit_submission(
    submission_id: str,
    payload: SubmitRequest | None = None,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    payload = payload or SubmitRequest()
    return submission_service.submissions.submit(
        db,
        submission_id,
        actor_id,
        expedite=payload.expedite,
        today=payload.submission_date,
    )


@router.post("/submissions/{submission_id}/status", response_model=SubmissionRead)
def update_submission_status(
    submission_id: str,
    payload: StatusUpdateRequest,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    return submission_service.submissions.update_status(
        db,
        submission_id,
        payload.status,
        actor_id=actor_id,
        comments=payload.comments,
        submission_number=payload.submission_number,
    )


@router.post("/submissions/{submission_id}/withdraw", response_model=SubmissionRead)
def withdraw_submission(
    submission_id: str,
    payload: WithdrawRequest | None = None,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    reason = payload.reason if payload else None
    return submission_service.submissions.withdraw(db, submission_id, actor_id, reason)


@router.get(
    "/submissions/{submission_id}/validation", response_model=SubmissionValidationRead
)
def validate_submission(submission_id: str, db: Session = Depends(get_db)):
    return submission_service.submissions.validate(db, submission_id)


@router.get(
    "/submissions/{submission_id}/api-logs",
    response_model=ListResponse[AuthorityApiLogRead],
)
def submission_api_logs(
    submission_id: str,
    success: bool | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    submission = submission_service.submissions.get(db, submission_id)
    items = authority_service.authorities.list_api_logs(
        db, None, submission.id, success, limit, offset
    )
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}


@router.post("/submissions/{submission_id}/sync", response_model=SubmissionRead)
def sync_submission(
    submission_id: str,
    payload: SyncRequest | None = None,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    timeout = payload.timeout_seconds if payload else None
    return submission_service.submissions.sync_with_authority(
        db, submission_id, timeout=timeout, actor_id=actor_id
    )


@router.get(
    "/submissions/{submission_id}/history",
    response_model=ListResponse[SubmissionStatusChangeRead],
)
def submission_history(submission_id: str, db: Session = Depends(get_db)):
    items = submission_service.submissions.history(db, submission_id)
    return {"items": items, "count": len(items), "limit": None, "offset": None}


# ------------------------------------------------------------------
# Fees
# ------------------------------------------------------------------


@router.get("/submissions/{submission_id}/fees", response_model=FeeSummaryRead)
def submission_fees(submission_id: str, db: Session = Depends(get_db)):
    return submission_service.submission_fees.summary(db, submission_id)


@router.post("/submissions/{submission_id}/fees/quote", response_model=FeeQuoteRead)
def quote_submission_fees(
    submission_id: str,
    payload: FeeQuoteRequest | None = None,
    db: Session = Depends(get_db),
):
    payload = payload or FeeQuoteRequest()
    calculation = submission_service.submissions.quote_fees(
        db, submission_id, expedite=payload.expedite, today=payload.submission_date
    )
    return {
        "fees": list(calculation.fees),
        "currency": calculation.currency,
        "total_amount": calculation.total_amount,
    }


@router.post("/fees/{fee_id}/payment", response_model=SubmissionFeeRead)
def record_fee_payment(
    fee_id: str, payload: FeePaymentRequest, db: Session = Depends(get_db)
):
    return submission_service.submission_fees.mark_paid(
        db, fee_id, payload.payment_reference
    )


@router.post("/fees/{fee_id}/waive", response_model=SubmissionFeeRead)
def waive_fee(
    fee_id: str,
    payload: FeeWaiveRequest,
    db: Session = Depends(get_db),
    actor_id: UUID = Depends(get_actor_id),
):
    return submission_service.submission_fees.waive(
        db, fee_id, payload.reason, actor_id=actor_id
    )
