from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from time import monotonic
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from archflow.config import settings
from archflow.exceptions import (
    AuthorityGatewayError,
    NotFoundError,
    OperationTimeoutError,
    ValidationError,
)
from archflow.models.submission import (
    Authority,
    AuthorityApiLog,
    AuthorityStatus,
    Submission,
    SubmissionCategory,
    SubmissionStatus,
)
from archflow.schemas.authority import ReferenceDataImport
from archflow.services.common import apply_pagination, coerce_enum, coerce_uuid
from archflow.services.fees import FeeSchedule
from archflow.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_MAX_LOGGED_BODY = 4000


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class Authorities(ListResponseMixin):
    @staticmethod
    def get(db: Session, authority_id: str) -> Authority:
        authority = db.get(Authority, coerce_uuid(authority_id))
        if not authority:
            raise NotFoundError("Authority not found")
        return authority

    @staticmethod
    def list(
        db: Session,
        status: str | None,
        state_code: str | None,
        limit: int,
        offset: int,
    ) -> list[Authority]:
        query = db.query(Authority)
        if status is not None:
            query = query.filter(
                Authority.status == coerce_enum(AuthorityStatus, status, "status")
            )
        if state_code is not None:
            query = query.filter(Authority.state_code == state_code)
        query = query.order_by(Authority.code.asc())
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def list_categories(
        db: Session, authority_id: str, include_inactive: bool = False
    ) -> list[SubmissionCategory]:
        authority = Authorities.get(db, authority_id)
        stmt = select(SubmissionCategory).where(
            SubmissionCategory.authority_id == authority.id
        )
        if not include_inactive:
            stmt = stmt.where(SubmissionCategory.is_active.is_(True))
        return db.scalars(stmt.order_by(SubmissionCategory.code.asc())).all()

    @staticmethod
    def get_category(db: Session, category_id: str) -> SubmissionCategory:
        category = db.get(SubmissionCategory, coerce_uuid(category_id))
        if not category:
            raise NotFoundError("Submission category not found")
        return category

    @staticmethod
    def list_api_logs(
        db: Session,
        authority_id: str | None,
        submission_id: str | None,
        success: bool | None,
        limit: int,
        offset: int,
    ) -> list[AuthorityApiLog]:
        stmt = select(AuthorityApiLog)
        if authority_id is not None:
            stmt = stmt.where(AuthorityApiLog.authority_id == coerce_uuid(authority_id))
        if submission_id is not None:
            stmt = stmt.where(
                AuthorityApiLog.submission_id == coerce_uuid(submission_id)
            )
        if success is not None:
            stmt = stmt.where(AuthorityApiLog.success == success)
        stmt = stmt.order_by(AuthorityApiLog.created_at.desc())
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def record_api_call(
        db: Session,
        authority: Authority,
        submission: Submission | None,
        operation_type: str,
        call: GatewayCall | None,
        error: Exception | None = None,
        initiated_by=None,
    ) -> AuthorityApiLog:
        """Persist one gateway request in its own transaction.

        The caller's session is left untouched, so the entry survives a
        rollback of whatever the caller does with the response.
        """
        call = call or GatewayCall(method="GET")
        entry = AuthorityApiLog(
            authority_id=authority.id,
            submission_id=submission.id if submission is not None else None,
            operation_type=operation_type,
            method=call.method,
            endpoint=call.endpoint,
            response_status_code=call.status_code,
            response_body=call.response_body,
            execution_time_ms=call.elapsed_ms,
            success=error is None,
            error_message=str(error) if error is not None else None,
            initiated_by=coerce_uuid(initiated_by),
        )
        with Session(bind=db.get_bind(), expire_on_commit=False) as log_db:
            log_db.add(entry)
            log_db.commit()
        logger.info(
            "Logged %s call to authority %s (success=%s)",
            operation_type,
            authority.code,
            entry.success,
        )
        return entry

    @staticmethod
    def import_reference_data(db: Session, payload: ReferenceDataImport) -> dict:
        """Upsert authorities and their categories by code.

        Every category's fee schedule is parsed up front; if any entry is
        malformed nothing is written and all problems are reported.
        """
        errors = []
        for a_index, item in enumerate(payload.authorities):
            for c_index, category in enumerate(item.categories):
                prefix = f"authorities[{a_index}].categories[{c_index}]"
                try:
                    FeeSchedule.from_rules(
                        category.fee_schedule,
                        default_currency=settings.default_currency,
                    )
                except ValidationError as exc:
                    for problem in exc.details or []:
                        errors.append(
                            {
                                "field": f"{prefix}.fee_schedule.{problem['field']}",
                                "message": problem["message"],
                            }
                        )
                if category.max_processing_days < category.typical_processing_days:
                    errors.append(
                        {
                            "field": f"{prefix}.max_processing_days",
                            "message": "must be >= typical_processing_days",
                        }
                    )
        if errors:
            raise ValidationError("Invalid reference data", details=errors)

        counts = {
            "authorities_created": 0,
            "authorities_updated": 0,
            "categories_created": 0,
            "categories_updated": 0,
        }
        for item in payload.authorities:
            data = item.model_dump(exclude={"categories"})
            authority = db.scalars(
                select(Authority).where(Authority.code == item.code)
            ).first()
            if authority is None:
                authority = Authority(**data)
                db.add(authority)
                db.flush()
                counts["authorities_created"] += 1
            else:
                for key, value in data.items():
                    setattr(authority, key, value)
                counts["authorities_updated"] += 1

            for category_item in item.categories:
                category_data = category_item.model_dump()
                category = db.scalars(
                    select(SubmissionCategory)
                    .where(SubmissionCategory.authority_id == authority.id)
                    .where(SubmissionCategory.code == category_item.code)
                ).first()
                if category is None:
                    db.add(SubmissionCategory(authority_id=authority.id, **category_data))
                    counts["categories_created"] += 1
                else:
                    for key, value in category_data.items():
                        setattr(category, key, value)
                    counts["categories_updated"] += 1
        db.commit()
        logger.info(
            "Imported reference data: %d authorities, %d categories",
            counts["authorities_created"] + counts["authorities_updated"],
            counts["categories_created"] + counts["categories_updated"],
        )
        return counts


# ---------------------------------------------------------------------------
# Authority API gateway
# ---------------------------------------------------------------------------


class AuthorityStatusReport(BaseModel):
    """The authority's view of one submission."""

    model_config = ConfigDict(extra="ignore")

    status: SubmissionStatus
    submission_number: str | None = None
    comments: str | None = None
    reference: str | None = None
    decided_on: date | None = None


@dataclass
class GatewayCall:
    """What went over the wire for one gateway request."""

    method: str
    endpoint: str | None = None
    status_code: int | None = None
    response_body: str | None = None
    elapsed_ms: int | None = None


class AuthorityGateway:
    """Pulls submission status from an authority's HTTP API.

    One GET per call, bounded by the caller's timeout. Pass ``client`` to
    reuse a connection pool or to plug in a mock transport. The most recent
    request is kept on ``last_call``, failed or not.
    """

    def __init__(self, client: httpx.Client | None = None) -> None:
        self._client = client
        self.last_call: GatewayCall | None = None

    def fetch_status(
        self,
        authority: Authority,
        submission: Submission,
        timeout: float,
    ) -> AuthorityStatusReport:
        call = self.last_call = GatewayCall(method="GET")
        if not authority.api_endpoint:
            raise AuthorityGatewayError(
                f"Authority {authority.code} has no API endpoint"
            )
        reference = submission.submission_number or submission.internal_reference
        url = f"{authority.api_endpoint.rstrip('/')}/submissions/{quote(reference, safe='')}/status"
        call.endpoint = url

        client = self._client or httpx.Client()
        started = monotonic()
        try:
            response = client.get(
                url,
                params={"internal_reference": submission.internal_reference},
                timeout=timeout,
            )
            call.status_code = response.status_code
            call.response_body = response.text[:_MAX_LOGGED_BODY]
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            logger.warning("Authority %s timed out after %ss", authority.code, timeout)
            raise OperationTimeoutError(
                f"Authority {authority.code} did not answer within {timeout}s"
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise AuthorityGatewayError(
                f"Authority {authority.code} returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AuthorityGatewayError(
                f"Authority {authority.code} could not be reached: {exc}"
            ) from exc
        except ValueError as exc:
            raise AuthorityGatewayError(
                f"Authority {authority.code} returned a non-JSON body"
            ) from exc
        finally:
            call.elapsed_ms = int((monotonic() - started) * 1000)
            if self._client is None:
                client.close()

        try:
            return AuthorityStatusReport.model_validate(data)
        except PydanticValidationError as exc:
            raise AuthorityGatewayError(
                f"Authority {authority.code} returned an unrecognised payload",
                details=exc.errors(include_url=False, include_context=False),
            ) from exc


authorities = Authorities()
