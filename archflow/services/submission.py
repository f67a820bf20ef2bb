from __future__ import annotations

import logging
import secrets
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from archflow.config import settings
from archflow.exceptions import (
    AuthorityGatewayError,
    IncompleteSubmissionError,
    InvalidStateTransitionError,
    NotFoundError,
    OperationTimeoutError,
    ValidationError,
)
from archflow.models.submission import (
    AUTHORITY_TRANSITIONS,
    SUBMITTABLE_STATUSES,
    TERMINAL_STATUSES,
    Authority,
    AuthorityStatus,
    FeeStatus,
    Submission,
    SubmissionCategory,
    SubmissionFee,
    SubmissionStatus,
    SubmissionStatusChange,
)
from archflow.models.workflow import WorkflowStatus
from archflow.schemas.submission import SubmissionCreate, SubmissionUpdate
from archflow.services.authority import AuthorityGateway, authorities
from archflow.services.calendar import project_completion_date
from archflow.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_enum,
    coerce_uuid,
    commit_or_conflict,
    utcnow,
    utctoday,
)
from archflow.services.event import EventType, publish_event
from archflow.services.fees import FeeCalculation, calculate_fees
from archflow.services.response import ListResponseMixin
from archflow.services.workflow import (
    cancel_workflows,
    in_progress_workflows,
    latest_internal_review,
)

logger = logging.getLogger(__name__)

_CORE_REQUIRED_FIELDS = ("site_address", "building_use")
SYNC_OPERATION = "status_sync"


def _generate_reference(now: datetime | None = None) -> str:
    now = now or utcnow()
    suffix = secrets.token_hex(3).upper()
    return f"{settings.internal_reference_prefix}-{now:%Y%m%d%H%M%S}-{suffix}"


def _get_submission(db: Session, submission_id) -> Submission:
    submission = db.get(Submission, coerce_uuid(submission_id))
    if not submission:
        raise NotFoundError("Submission not found")
    return submission


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _missing_field_errors(values: dict, category: SubmissionCategory | None) -> list[dict]:
    """Report each absent core or category-specific field.

    Category fields are looked up on the submission first and then in its
    free-form ``details``.
    """
    errors = [
        {"field": field, "message": "is required"}
        for field in _CORE_REQUIRED_FIELDS
        if _is_blank(values.get(field))
    ]
    if category is None:
        return errors
    details = values.get("details") or {}
    for field in category.required_fields or []:
        if field in _CORE_REQUIRED_FIELDS:
            continue
        value = values[field] if field in values else details.get(field)
        if _is_blank(value):
            errors.append(
                {"field": field, "message": f"is required for category {category.code}"}
            )
    return errors


def _missing_document_types(submission: Submission) -> tuple[bool, list[str]]:
    """Whether any live document is attached, and the required types absent."""
    documents = [d for d in submission.documents if d.is_active]
    present = {d.document_type for d in documents}
    required = set(submission.category.required_document_types or [])
    return bool(documents), sorted(required - present)


def _record_change(
    db: Session,
    submission: Submission,
    previous: SubmissionStatus | None,
    actor_id=None,
    comments: str | None = None,
    authority_reference: str | None = None,
) -> SubmissionStatusChange:
    sequence = len(submission.status_history) + 1 if previous is not None else 1
    change = SubmissionStatusChange(
        submission_id=submission.id,
        sequence=sequence,
        previous_status=previous,
        new_status=submission.status,
        changed_by=coerce_uuid(actor_id),
        comments=comments,
        authority_reference=authority_reference,
    )
    db.add(change)
    return change


def _assign_submission_number(submission: Submission, number: str | None) -> bool:
    """Set the authority's number once; returns True when it changed."""
    if not number:
        return False
    if submission.submission_number is None:
        submission.submission_number = number
        return True
    if submission.submission_number != number:
        raise ValidationError(
            "Submission number is already assigned",
            details=[
                {
                    "field": "submission_number",
                    "message": f"already set to {submission.submission_number}",
                }
            ],
        )
    return False


def _fee_payload(submission: Submission) -> dict:
    return {
        "total_amount": str(submission.total_amount),
        "outstanding_amount": str(submission.outstanding_amount),
    }


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


class Submissions(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: SubmissionCreate) -> Submission:
        errors = []
        authority = db.get(Authority, coerce_uuid(payload.authority_id))
        if not authority:
            errors.append({"field": "authority_id", "message": "authority not found"})
        elif authority.status != AuthorityStatus.active:
            errors.append(
                {
                    "field": "authority_id",
                    "message": f"authority is {authority.status.value}",
                }
            )
        category = db.get(SubmissionCategory, coerce_uuid(payload.category_id))
        if not category:
            errors.append({"field": "category_id", "message": "category not found"})
        elif category.authority_id != coerce_uuid(payload.authority_id):
            errors.append(
                {
                    "field": "category_id",
                    "message": "category does not belong to the authority",
                }
            )
            category = None
        elif not category.is_active:
            errors.append({"field": "category_id", "message": "category is inactive"})
        if payload.created_by is None:
            errors.append({"field": "created_by", "message": "is required"})
        errors.extend(_missing_field_errors(payload.model_dump(), category))
        if errors:
            raise ValidationError("Submission is invalid", details=errors)

        submission = Submission(
            **payload.model_dump(),
            internal_reference=_generate_reference(),
            status=SubmissionStatus.draft,
            last_updated_by=payload.created_by,
        )
        db.add(submission)
        db.flush()
        _record_change(db, submission, None, actor_id=payload.created_by)
        commit_or_conflict(db, "Submission")
        db.refresh(submission)
        logger.info(
            "Created submission %s (%s)", submission.id, submission.internal_reference
        )
        publish_event(
            EventType.submission_created,
            entity_type="submission",
            entity_id=submission.id,
            actor_id=submission.created_by,
            submission_id=submission.id,
            payload={"internal_reference": submission.internal_reference},
        )
        return submission

    @staticmethod
    def get(db: Session, submission_id: str) -> Submission:
        return _get_submission(db, submission_id)

    @staticmethod
    def list(
        db: Session,
        project_id: str | None,
        authority_id: str | None,
        category_id: str | None,
        status: str | None,
        overdue: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Submission]:
        stmt = select(Submission)
        if project_id is not None:
            stmt = stmt.where(Submission.project_id == coerce_uuid(project_id))
        if authority_id is not None:
            stmt = stmt.where(Submission.authority_id == coerce_uuid(authority_id))
        if category_id is not None:
            stmt = stmt.where(Submission.category_id == coerce_uuid(category_id))
        if status is not None:
            stmt = stmt.where(
                Submission.status == coerce_enum(SubmissionStatus, status, "status")
            )
        if overdue is not None:
            today = utctoday()
            if overdue:
                stmt = stmt.where(Submission.status.not_in(TERMINAL_STATUSES)).where(
                    Submission.expected_completion_date < today
                )
            else:
                stmt = stmt.where(
                    or_(
                        Submission.status.in_(TERMINAL_STATUSES),
                        Submission.expected_completion_date.is_(None),
                        Submission.expected_completion_date >= today,
                    )
                )
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "created_at": Submission.created_at,
                "submission_date": Submission.submission_date,
                "expected_completion_date": Submission.expected_completion_date,
                "internal_reference": Submission.internal_reference,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(
        db: Session, submission_id: str, payload: SubmissionUpdate, actor_id=None
    ) -> Submission:
        submission = _get_submission(db, submission_id)
        if submission.status not in SUBMITTABLE_STATUSES:
            raise InvalidStateTransitionError(
                f"Cannot edit a {submission.status.value} submission"
            )
        data = payload.model_dump(exclude_unset=True)
        if submission.submission_date is not None:
            # Fees were fixed at first submit.
            data.pop("expedite", None)
        values = {
            field: getattr(submission, field)
            for field in SubmissionUpdate.model_fields
        }
        values.update(data)
        errors = _missing_field_errors(values, submission.category)
        if errors:
            raise ValidationError("Submission is invalid", details=errors)

        for key, value in data.items():
            setattr(submission, key, value)
        submission.last_updated_by = coerce_uuid(actor_id) or submission.last_updated_by
        commit_or_conflict(db, "Submission")
        db.refresh(submission)
        logger.info("Updated submission %s", submission.id)
        publish_event(
            EventType.submission_updated,
            entity_type="submission",
            entity_id=submission.id,
            actor_id=actor_id,
            submission_id=submission.id,
            payload={"changed_fields": list(data.keys())},
        )
        return submission

    @staticmethod
    def submit(
        db: Session,
        submission_id: str,
        actor_id,
        expedite: bool | None = None,
        today: date | None = None,
    ) -> Submission:
        """Lodge a draft, or resubmit after the authority asked for revisions.

        The first submit fixes ``submission_date`` and the fee lines. A
        resubmission keeps both and only re-projects the processing dates.
        Status, dates, fees and the audit entry go out in one commit.
        """
        today = today or utctoday()
        submission = _get_submission(db, submission_id)
        if submission.status not in SUBMITTABLE_STATUSES:
            raise InvalidStateTransitionError(
                f"Cannot submit a {submission.status.value} submission",
                details={"status": submission.status.value},
            )

        category = submission.category
        has_documents, missing = _missing_document_types(submission)
        if not has_documents or missing:
            raise IncompleteSubmissionError(
                "Submission is missing required documents"
                if missing
                else "Submission has no documents attached",
                details={"missing_document_types": missing},
            )

        running = in_progress_workflows(db, submission)
        if running:
            raise InvalidStateTransitionError(
                "Workflows are still in progress",
                details={"workflow_ids": [str(w.id) for w in running]},
            )
        review = latest_internal_review(db, submission.id)
        if review is not None and review.status != WorkflowStatus.approved:
            raise InvalidStateTransitionError(
                f"Internal review was {review.status.value}",
                details={"workflow_id": str(review.id)},
            )

        previous = submission.status
        resubmission = submission.submission_date is not None
        if not resubmission:
            if expedite is not None:
                submission.expedite = expedite
            calculation = calculate_fees(
                category.fee_schedule,
                submission_date=today,
                built_up_area=submission.built_up_area,
                lodgement_deadline=submission.lodgement_deadline,
                expedite=submission.expedite,
                default_currency=settings.default_currency,
            )
            for position, line in enumerate(calculation.fees, start=1):
                db.add(
                    SubmissionFee(
                        submission_id=submission.id,
                        position=position,
                        fee_type=line.fee_type,
                        description=line.description,
                        calculation=line.calculation,
                        amount=line.amount,
                        currency=line.currency,
                    )
                )
            submission.submission_date = today

        submission.last_submitted_date = today
        submission.expected_completion_date = project_completion_date(
            today, category.typical_processing_days
        )
        submission.expiry_date = project_completion_date(
            today, category.max_processing_days
        )
        submission.status = SubmissionStatus.submitted
        submission.last_updated_by = coerce_uuid(actor_id)
        _record_change(
            db,
            submission,
            previous,
            actor_id=actor_id,
            comments="Resubmitted" if resubmission else None,
        )
        commit_or_conflict(db, "Submission")
        db.refresh(submission)
        logger.info(
            "%s submission %s", "Resubmitted" if resubmission else "Submitted", submission.id
        )
        publish_event(
            EventType.submission_submitted,
            entity_type="submission",
            entity_id=submission.id,
            actor_id=actor_id,
            submission_id=submission.id,
            payload={
                "resubmission": resubmission,
                "expected_completion_date": submission.expected_completion_date.isoformat(),
                **_fee_payload(submission),
            },
        )
        return submission

    @staticmethod
    def update_status(
        db: Session,
        submission_id: str,
        status: SubmissionStatus | str,
        actor_id=None,
        comments: str | None = None,
        submission_number: str | None = None,
        authority_reference: str | None = None,
        today: date | None = None,
    ) -> Submission:
        today = today or utctoday()
        status = coerce_enum(SubmissionStatus, status, "status")
        submission = _get_submission(db, submission_id)
        previous = submission.status
        allowed = AUTHORITY_TRANSITIONS[previous]
        if status not in allowed:
            raise InvalidStateTransitionError(
                f"Cannot move a {previous.value} submission to {status.value}",
                details={
                    "from": previous.value,
                    "to": status.value,
                    "allowed": sorted(s.value for s in allowed),
                },
            )
        if status == SubmissionStatus.approved:
            running = in_progress_workflows(db, submission)
            if running:
                raise InvalidStateTransitionError(
                    "Workflows are still in progress",
                    details={"workflow_ids": [str(w.id) for w in running]},
                )
        # Last guard; nothing is mutated before every check has passed.
        _assign_submission_number(submission, submission_number)

        if status in (SubmissionStatus.approved, SubmissionStatus.rejected):
            submission.decision_date = today
        if status == SubmissionStatus.revision_needed:
            submission.expiry_date = today + timedelta(
                days=submission.category.resubmission_window_days
            )

        submission.status = status
        submission.last_updated_by = coerce_uuid(actor_id) or submission.last_updated_by
        _record_change(
            db,
            submission,
            previous,
            actor_id=actor_id,
            comments=comments,
            authority_reference=authority_reference,
        )
        commit_or_conflict(db, "Submission")
        db.refresh(submission)
        logger.info(
            "Submission %s moved %s -> %s", submission.id, previous.value, status.value
        )
        payload = {"previous_status": previous.value, "status": status.value}
        if status == SubmissionStatus.approved:
            payload.update(_fee_payload(submission))
        publish_event(
            EventType.submission_status_changed,
            entity_type="submission",
            entity_id=submission.id,
            actor_id=actor_id,
            submission_id=submission.id,
            payload=payload,
        )
        return submission

    @staticmethod
    def withdraw(
        db: Session, submission_id: str, actor_id, reason: str | None = None
    ) -> Submission:
        submission = _get_submission(db, submission_id)
        if submission.status == SubmissionStatus.withdrawn:
            return submission
        if submission.status.is_terminal:
            raise InvalidStateTransitionError(
                f"Cannot withdraw a {submission.status.value} submission"
            )
        previous = submission.status
        running = in_progress_workflows(db, submission)
        cancel_workflows(db, running, actor_id, reason or "Submission withdrawn")
        submission.status = SubmissionStatus.withdrawn
        submission.last_updated_by = coerce_uuid(actor_id)
        _record_change(db, submission, previous, actor_id=actor_id, comments=reason)
        commit_or_conflict(db, "Submission")
        db.refresh(submission)
        logger.info(
            "Withdrew submission %s (%d workflows cancelled)", submission.id, len(running)
        )
        publish_event(
            EventType.submission_withdrawn,
            entity_type="submission",
            entity_id=submission.id,
            actor_id=actor_id,
            submission_id=submission.id,
            payload={"previous_status": previous.value, "reason": reason},
        )
        return submission

    @staticmethod
    def expire(db: Session, submission_id: str, today: date | None = None) -> Submission:
        today = today or utctoday()
        submission = _get_submission(db, submission_id)
        if submission.status == SubmissionStatus.expired:
            return submission
        if submission.status.is_terminal:
            raise InvalidStateTransitionError(
                f"Cannot expire a {submission.status.value} submission"
            )
        if submission.expiry_date is None or today <= submission.expiry_date:
            raise InvalidStateTransitionError(
                "Submission has not lapsed",
                details={
                    "expiry_date": (
                        submission.expiry_date.isoformat()
                        if submission.expiry_date
                        else None
                    )
                },
            )
        previous = submission.status
        cancel_workflows(
            db, in_progress_workflows(db, submission), None, "Submission expired"
        )
        submission.status = SubmissionStatus.expired
        _record_change(
            db,
            submission,
            previous,
            comments=f"Lapsed after {submission.expiry_date.isoformat()}",
        )
        commit_or_conflict(db, "Submission")
        db.refresh(submission)
        logger.info("Expired submission %s", submission.id)
        publish_event(
            EventType.submission_expired,
            entity_type="submission",
            entity_id=submission.id,
            submission_id=submission.id,
            payload={"previous_status": previous.value},
        )
        return submission

    @staticmethod
    def lapsed(db: Session, today: date | None = None) -> list:
        today = today or utctoday()
        stmt = (
            select(Submission.id)
            .where(Submission.status.not_in(TERMINAL_STATUSES))
            .where(Submission.expiry_date.is_not(None))
            .where(Submission.expiry_date < today)
            .order_by(Submission.expiry_date.asc())
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def quote_fees(
        db: Session,
        submission_id: str,
        expedite: bool | None = None,
        today: date | None = None,
    ) -> FeeCalculation:
        submission = _get_submission(db, submission_id)
        return calculate_fees(
            submission.category.fee_schedule,
            submission_date=today or utctoday(),
            built_up_area=submission.built_up_area,
            lodgement_deadline=submission.lodgement_deadline,
            expedite=submission.expedite if expedite is None else expedite,
            default_currency=settings.default_currency,
        )

    @staticmethod
    def history(db: Session, submission_id: str) -> list[SubmissionStatusChange]:
        submission = _get_submission(db, submission_id)
        return list(submission.status_history)

    @staticmethod
    def validate(db: Session, submission_id: str) -> dict:
        """Report everything that would stop ``submit`` right now.

        Read-only: nothing is written and no event is published. Field
        problems use the same wording ``create`` and ``update`` raise.
        """
        submission = _get_submission(db, submission_id)
        values = {
            field: getattr(submission, field)
            for field in SubmissionUpdate.model_fields
        }
        missing_fields = _missing_field_errors(values, submission.category)
        has_documents, missing_types = _missing_document_types(submission)

        blockers = []
        if submission.status not in SUBMITTABLE_STATUSES:
            blockers.append(f"Cannot submit a {submission.status.value} submission")
        if not has_documents:
            blockers.append("Submission has no documents attached")
        if in_progress_workflows(db, submission):
            blockers.append("Workflows are still in progress")
        review = latest_internal_review(db, submission.id)
        if review is not None and review.status != WorkflowStatus.approved:
            blockers.append(f"Internal review was {review.status.value}")

        return {
            "submission_id": submission.id,
            "status": submission.status,
            "ready": not (missing_fields or missing_types or blockers),
            "missing_fields": missing_fields,
            "missing_document_types": missing_types,
            "blockers": blockers,
        }

    @staticmethod
    def stats(
        db: Session,
        project_id: str | None = None,
        authority_id: str | None = None,
        today: date | None = None,
    ) -> dict:
        """Counts by status for a project, an authority, or everything."""
        today = today or utctoday()
        scope = []
        if project_id is not None:
            scope.append(Submission.project_id == coerce_uuid(project_id))
        if authority_id is not None:
            scope.append(Submission.authority_id == coerce_uuid(authority_id))

        def _scoped(stmt):
            for clause in scope:
                stmt = stmt.where(clause)
            return stmt

        by_status = {status.value: 0 for status in SubmissionStatus}
        rows = db.execute(
            _scoped(
                select(Submission.status, func.count(Submission.id)).group_by(
                    Submission.status
                )
            )
        ).all()
        for status, count in rows:
            by_status[status.value] = count

        overdue = db.scalar(
            _scoped(
                select(func.count(Submission.id))
                .where(Submission.status.not_in(TERMINAL_STATUSES))
                .where(Submission.expected_completion_date < today)
            )
        )
        paid = db.scalar(
            _scoped(
                select(func.sum(SubmissionFee.amount))
                .join(Submission, SubmissionFee.submission_id == Submission.id)
                .where(SubmissionFee.status == FeeStatus.paid)
            )
        )
        decided = db.execute(
            _scoped(
                select(Submission.submission_date, Submission.decision_date)
                .where(Submission.submission_date.is_not(None))
                .where(Submission.decision_date.is_not(None))
            )
        ).all()
        durations = [(decided_on - lodged).days for lodged, decided_on in decided]

        terminal = {status.value for status in TERMINAL_STATUSES}
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "pending": sum(
                count for value, count in by_status.items() if value not in terminal
            ),
            "overdue": overdue or 0,
            "total_fees_paid": Decimal(str(paid or 0)).quantize(Decimal("0.01")),
            "average_processing_days": (
                round(sum(durations) / len(durations), 1) if durations else None
            ),
        }

    @staticmethod
    def sync_with_authority(
        db: Session,
        submission_id: str,
        timeout: float | None = None,
        gateway: AuthorityGateway | None = None,
        actor_id=None,
    ) -> Submission:
        """Pull the authority's status and apply it.

        The network call finishes before anything is written. When the
        authority has already decided on a submission still marked
        ``submitted``, the intermediate ``under_review`` step is recorded
        first so the audit trail keeps to the transition table.
        """
        submission = _get_submission(db, submission_id)
        if not AUTHORITY_TRANSITIONS[submission.status]:
            raise InvalidStateTransitionError(
                f"A {submission.status.value} submission is not awaiting the authority"
            )
        gateway = gateway or AuthorityGateway()
        try:
            report = gateway.fetch_status(
                submission.authority,
                submission,
                timeout or settings.authority_timeout_seconds,
            )
        except (AuthorityGatewayError, OperationTimeoutError) as exc:
            authorities.record_api_call(
                db,
                submission.authority,
                submission,
                SYNC_OPERATION,
                gateway.last_call,
                error=exc,
                initiated_by=actor_id,
            )
            raise
        authorities.record_api_call(
            db,
            submission.authority,
            submission,
            SYNC_OPERATION,
            gateway.last_call,
            initiated_by=actor_id,
        )

        if report.status == submission.status:
            if _assign_submission_number(submission, report.submission_number):
                commit_or_conflict(db, "Submission")
                db.refresh(submission)
            logger.info("Submission %s unchanged at authority", submission.id)
            return submission

        if (
            submission.status == SubmissionStatus.submitted
            and report.status != SubmissionStatus.under_review
            and report.status in AUTHORITY_TRANSITIONS[SubmissionStatus.under_review]
        ):
            Submissions.update_status(
                db,
                submission.id,
                SubmissionStatus.under_review,
                actor_id=actor_id,
                comments="Review started (reported by authority sync)",
                submission_number=report.submission_number,
                authority_reference=report.reference,
            )
        return Submissions.update_status(
            db,
            submission.id,
            report.status,
            actor_id=actor_id,
            comments=report.comments,
            submission_number=report.submission_number,
            authority_reference=report.reference,
            today=report.decided_on,
        )


# ---------------------------------------------------------------------------
# Submission fees
# ---------------------------------------------------------------------------


class SubmissionFees:
    @staticmethod
    def get(db: Session, fee_id: str) -> SubmissionFee:
        fee = db.get(SubmissionFee, coerce_uuid(fee_id))
        if not fee:
            raise NotFoundError("Fee not found")
        return fee

    @staticmethod
    def list(db: Session, submission_id: str) -> list[SubmissionFee]:
        submission = _get_submission(db, submission_id)
        return list(submission.fees)

    @staticmethod
    def summary(db: Session, submission_id: str) -> dict:
        submission = _get_submission(db, submission_id)
        fees = list(submission.fees)
        return {
            "items": fees,
            "currency": fees[0].currency if fees else None,
            "total_amount": submission.total_amount,
            "outstanding_amount": submission.outstanding_amount,
        }

    @staticmethod
    def mark_paid(
        db: Session,
        fee_id: str,
        payment_reference: str,
        paid_at: datetime | None = None,
    ) -> SubmissionFee:
        fee = SubmissionFees.get(db, fee_id)
        if fee.status == FeeStatus.paid:
            if fee.payment_reference == payment_reference:
                return fee
            raise InvalidStateTransitionError(
                "Fee is already paid under a different reference",
                details={"payment_reference": fee.payment_reference},
            )
        if fee.status == FeeStatus.waived:
            raise InvalidStateTransitionError("A waived fee cannot be paid")
        fee.status = FeeStatus.paid
        fee.payment_reference = payment_reference
        fee.paid_at = paid_at or utcnow()
        commit_or_conflict(db, "Fee")
        db.refresh(fee)
        logger.info("Fee %s paid (%s)", fee.id, payment_reference)
        publish_event(
            EventType.fee_paid,
            entity_type="submission_fee",
            entity_id=fee.id,
            submission_id=fee.submission_id,
            payload={
                "amount": str(fee.amount),
                "currency": fee.currency,
                "payment_reference": payment_reference,
            },
        )
        return fee

    @staticmethod
    def waive(db: Session, fee_id: str, reason: str, actor_id=None) -> SubmissionFee:
        fee = SubmissionFees.get(db, fee_id)
        if fee.status == FeeStatus.waived:
            return fee
        if fee.status == FeeStatus.paid:
            raise InvalidStateTransitionError("A paid fee cannot be waived")
        fee.status = FeeStatus.waived
        fee.waived_reason = reason
        commit_or_conflict(db, "Fee")
        db.refresh(fee)
        logger.info("Fee %s waived", fee.id)
        publish_event(
            EventType.fee_waived,
            entity_type="submission_fee",
            entity_id=fee.id,
            actor_id=actor_id,
            submission_id=fee.submission_id,
            payload={"amount": str(fee.amount), "reason": reason},
        )
        return fee


submissions = Submissions()
submission_fees = SubmissionFees()
