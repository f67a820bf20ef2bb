from datetime import date

import httpx
import pytest

from archflow.exceptions import (
    AuthorityGatewayError,
    InvalidStateTransitionError,
    NotFoundError,
    OperationTimeoutError,
    ValidationError,
)
from archflow.models import SubmissionCategory, SubmissionStatus
from archflow.schemas.authority import (
    AuthorityImport,
    ReferenceDataImport,
    SubmissionCategoryImport,
)
from archflow.services.authority import AuthorityGateway, authorities
from archflow.services.submission import submissions


def _import_payload(name="Majlis Bandaraya Petaling Jaya", **category):
    category_data = {
        "code": "BP",
        "name": "Building Plan",
        "fee_schedule": {"base_fee": "500.00", "sst_rate": "0.06"},
        "typical_processing_days": 20,
        "max_processing_days": 40,
        "required_document_types": ["architectural_plan"],
    }
    category_data.update(category)
    return ReferenceDataImport(
        authorities=[
            AuthorityImport(
                code="MBPJ",
                name=name,
                jurisdiction="Petaling Jaya",
                state_code="SGR",
                categories=[SubmissionCategoryImport(**category_data)],
            )
        ]
    )


def _gateway(handler):
    return AuthorityGateway(httpx.Client(transport=httpx.MockTransport(handler)))


def _json_handler(body, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=body)

    return handler


class TestReferenceData:
    def test_import_then_update(self, db_session) -> None:
        created = authorities.import_reference_data(db_session, _import_payload())
        assert created == {
            "authorities_created": 1,
            "authorities_updated": 0,
            "categories_created": 1,
            "categories_updated": 0,
        }

        updated = authorities.import_reference_data(
            db_session, _import_payload(name="MBPJ", typical_processing_days=15)
        )
        assert updated["authorities_updated"] == 1
        assert updated["categories_updated"] == 1

        authority = authorities.list(db_session, None, "SGR", 50, 0)[0]
        assert authority.name == "MBPJ"
        category = authorities.list_categories(db_session, authority.id)[0]
        assert category.typical_processing_days == 15

    def test_invalid_import_writes_nothing(self, db_session) -> None:
        payload = _import_payload(
            fee_schedule={"base_fee": "lots"},
            typical_processing_days=30,
            max_processing_days=10,
        )
        with pytest.raises(ValidationError) as exc_info:
            authorities.import_reference_data(db_session, payload)
        fields = {d["field"] for d in exc_info.value.details}
        assert fields == {
            "authorities[0].categories[0].fee_schedule.base_fee",
            "authorities[0].categories[0].max_processing_days",
        }
        assert authorities.list(db_session, None, None, 50, 0) == []

    def test_inactive_categories_hidden(self, db_session, authority, category) -> None:
        db_session.add(
            SubmissionCategory(
                authority_id=authority.id,
                code="OLD",
                name="Retired category",
                fee_schedule={"base_fee": "1"},
                typical_processing_days=1,
                max_processing_days=1,
                is_active=False,
            )
        )
        db_session.commit()
        assert [c.code for c in authorities.list_categories(db_session, authority.id)] == [
            "BP"
        ]
        assert len(
            authorities.list_categories(db_session, authority.id, include_inactive=True)
        ) == 2

    def test_unknown_authority(self, db_session) -> None:
        with pytest.raises(NotFoundError):
            authorities.get(db_session, "00000000-0000-0000-0000-000000000000")


class TestAuthorityGateway:
    def test_fetch_status(self, db_session, authority, submission) -> None:
        seen = []
        gateway = _gateway(
            _json_handler({"status": "under_review", "extra": "ignored"}, seen=seen)
        )
        report = gateway.fetch_status(authority, submission, timeout=5)
        assert report.status == SubmissionStatus.under_review

        request = seen[0]
        assert request.url.path == (
            f"/api/submissions/{submission.internal_reference}/status"
        )
        assert request.url.params["internal_reference"] == submission.internal_reference

    def test_timeout(self, authority, submission) -> None:
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(OperationTimeoutError):
            _gateway(handler).fetch_status(authority, submission, timeout=0.5)

    def test_http_error(self, authority, submission) -> None:
        with pytest.raises(AuthorityGatewayError) as exc_info:
            _gateway(_json_handler({}, status_code=503)).fetch_status(
                authority, submission, timeout=5
            )
        assert "503" in exc_info.value.message

    def test_non_json_body(self, authority, submission) -> None:
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        with pytest.raises(AuthorityGatewayError):
            _gateway(handler).fetch_status(authority, submission, timeout=5)

    def test_unrecognised_status(self, authority, submission) -> None:
        with pytest.raises(AuthorityGatewayError) as exc_info:
            _gateway(_json_handler({"status": "lost_in_post"})).fetch_status(
                authority, submission, timeout=5
            )
        assert exc_info.value.details

    def test_missing_endpoint(self, db_session, authority, submission) -> None:
        authority.api_endpoint = None
        db_session.commit()
        with pytest.raises(AuthorityGatewayError):
            _gateway(_json_handler({})).fetch_status(authority, submission, timeout=5)


class TestSyncWithAuthority:
    def _submitted(self, db_session, complete_submission, actor_id):
        return submissions.submit(
            db_session, complete_submission.id, actor_id, today=date(2024, 1, 10)
        )

    def test_decision_replays_review(
        self, db_session, complete_submission, actor_id
    ) -> None:
        self._submitted(db_session, complete_submission, actor_id)
        gateway = _gateway(
            _json_handler(
                {
                    "status": "approved",
                    "submission_number": "BP/2024/0042",
                    "comments": "Approved subject to conditions",
                    "reference": "MBPJ-REF-9",
                    "decided_on": "2024-01-30",
                }
            )
        )
        result = submissions.sync_with_authority(
            db_session, complete_submission.id, gateway=gateway, actor_id=actor_id
        )
        assert result.status == SubmissionStatus.approved
        assert result.submission_number == "BP/2024/0042"
        assert result.decision_date == date(2024, 1, 30)

        history = submissions.history(db_session, complete_submission.id)
        assert [h.new_status for h in history] == [
            SubmissionStatus.draft,
            SubmissionStatus.submitted,
            SubmissionStatus.under_review,
            SubmissionStatus.approved,
        ]
        assert history[-1].authority_reference == "MBPJ-REF-9"

    def test_unchanged_status_assigns_number(
        self, db_session, complete_submission, actor_id
    ) -> None:
        self._submitted(db_session, complete_submission, actor_id)
        gateway = _gateway(
            _json_handler({"status": "submitted", "submission_number": "BP/2024/0042"})
        )
        result = submissions.sync_with_authority(
            db_session, complete_submission.id, gateway=gateway
        )
        assert result.status == SubmissionStatus.submitted
        assert result.submission_number == "BP/2024/0042"
        assert len(submissions.history(db_session, complete_submission.id)) == 2

    def test_timeout_leaves_submission_untouched(
        self, db_session, complete_submission, actor_id
    ) -> None:
        self._submitted(db_session, complete_submission, actor_id)

        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(OperationTimeoutError):
            submissions.sync_with_authority(
                db_session, complete_submission.id, timeout=1, gateway=_gateway(handler)
            )
        stored = submissions.get(db_session, complete_submission.id)
        assert stored.status == SubmissionStatus.submitted
        assert stored.row_version == 2

    def test_draft_is_not_synced(self, db_session, submission) -> None:
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(InvalidStateTransitionError):
            submissions.sync_with_authority(
                db_session, submission.id, gateway=_gateway(handler)
            )


class TestAuthorityApiLogs:
    def _submitted(self, db_session, complete_submission, actor_id):
        return submissions.submit(
            db_session, complete_submission.id, actor_id, today=date(2024, 1, 10)
        )

    def _logs(self, db_session, submission_id, success=None):
        return authorities.list_api_logs(
            db_session, None, submission_id, success, 50, 0
        )

    def test_successful_sync_is_logged(
        self, db_session, complete_submission, actor_id
    ) -> None:
        self._submitted(db_session, complete_submission, actor_id)
        gateway = _gateway(_json_handler({"status": "under_review"}))
        submissions.sync_with_authority(
            db_session, complete_submission.id, gateway=gateway, actor_id=actor_id
        )

        [entry] = self._logs(db_session, complete_submission.id)
        assert entry.success is True
        assert entry.operation_type == "status_sync"
        assert entry.method == "GET"
        assert entry.endpoint.endswith(
            f"/submissions/{complete_submission.internal_reference}/status"
        )
        assert entry.response_status_code == 200
        assert "under_review" in entry.response_body
        assert entry.execution_time_ms >= 0
        assert entry.initiated_by == actor_id
        assert entry.authority_id == complete_submission.authority_id

    def test_failed_sync_is_logged(
        self, db_session, complete_submission, actor_id
    ) -> None:
        self._submitted(db_session, complete_submission, actor_id)
        gateway = _gateway(_json_handler({"error": "maintenance"}, status_code=503))
        with pytest.raises(AuthorityGatewayError):
            submissions.sync_with_authority(
                db_session, complete_submission.id, gateway=gateway
            )

        [entry] = self._logs(db_session, complete_submission.id, success=False)
        assert entry.response_status_code == 503
        assert entry.error_message.endswith("returned HTTP 503")
        assert self._logs(db_session, complete_submission.id, success=True) == []

    def test_timeout_is_logged(
        self, db_session, complete_submission, actor_id
    ) -> None:
        self._submitted(db_session, complete_submission, actor_id)

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(OperationTimeoutError):
            submissions.sync_with_authority(
                db_session, complete_submission.id, timeout=1, gateway=_gateway(handler)
            )
        [entry] = self._logs(db_session, complete_submission.id)
        assert entry.success is False
        assert entry.response_status_code is None
        assert "did not answer" in entry.error_message

    def test_log_survives_rejected_report(
        self, db_session, complete_submission, actor_id
    ) -> None:
        self._submitted(db_session, complete_submission, actor_id)
        # submitted -> draft is not a move the authority can make.
        gateway = _gateway(_json_handler({"status": "draft"}))
        with pytest.raises(InvalidStateTransitionError):
            submissions.sync_with_authority(
                db_session, complete_submission.id, gateway=gateway
            )
        [entry] = self._logs(db_session, complete_submission.id)
        assert entry.success is True

    def test_missing_endpoint_is_logged(
        self, db_session, authority, complete_submission, actor_id
    ) -> None:
        self._submitted(db_session, complete_submission, actor_id)
        authority.api_endpoint = None
        db_session.commit()
        with pytest.raises(AuthorityGatewayError):
            submissions.sync_with_authority(
                db_session, complete_submission.id, gateway=_gateway(_json_handler({}))
            )
        [entry] = self._logs(db_session, complete_submission.id)
        assert entry.endpoint is None
        assert "no API endpoint" in entry.error_message

    def test_filter_by_authority(
        self, db_session, authority, complete_submission, actor_id
    ) -> None:
        self._submitted(db_session, complete_submission, actor_id)
        gateway = _gateway(_json_handler({"status": "submitted"}))
        submissions.sync_with_authority(
            db_session, complete_submission.id, gateway=gateway
        )
        submissions.sync_with_authority(
            db_session, complete_submission.id, gateway=gateway
        )
        logs = authorities.list_api_logs(db_session, authority.id, None, None, 50, 0)
        assert len(logs) == 2
        first_page = authorities.list_api_logs(db_session, authority.id, None, None, 1, 0)
        assert len(first_page) == 1
