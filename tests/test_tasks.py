import hashlib
import hmac
import json
import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import httpx
import pytest
from celery.exceptions import Retry

from archflow.config import settings
from archflow.models import ShareStatus, SubmissionStatus
from archflow.schemas.sharing import DocumentShareCreate
from archflow.services.event import EventType, publish_event
from archflow.services.sharing import document_shares
from archflow.services.submission import submissions


class TestEventType:
    def test_all_event_types_have_dotted_values(self) -> None:
        for et in EventType:
            assert "." in et.value, f"{et.name} value should contain a dot"

    def test_submission_events(self) -> None:
        assert EventType.submission_submitted.value == "submission.submitted"
        assert EventType.submission_status_changed.value == "submission.status_changed"
        assert EventType.submission_expired.value == "submission.expired"

    def test_workflow_events(self) -> None:
        assert EventType.workflow_started.value == "workflow.started"
        assert EventType.workflow_step_completed.value == "workflow.step_completed"
        assert EventType.workflow_completed.value == "workflow.completed"


class TestPublishEvent:
    @patch("archflow.tasks.events.process_event.delay")
    def test_publish_event_calls_delay(self, mock_delay: MagicMock) -> None:
        entity_id = uuid.uuid4()
        submission_id = uuid.uuid4()
        publish_event(
            EventType.submission_submitted,
            entity_type="submission",
            entity_id=entity_id,
            submission_id=submission_id,
            payload={"resubmission": False},
        )
        mock_delay.assert_called_once_with(
            event_type="submission.submitted",
            entity_type="submission",
            entity_id=str(entity_id),
            actor_id=None,
            document_id=None,
            submission_id=str(submission_id),
            payload={"resubmission": False},
        )

    @patch(
        "archflow.tasks.events.process_event.delay",
        side_effect=RuntimeError("broker down"),
    )
    def test_publish_event_never_raises(self, mock_delay: MagicMock) -> None:
        publish_event(
            EventType.document_created, entity_type="document", entity_id=uuid.uuid4()
        )
        assert mock_delay.called

    @patch("archflow.services.submission.publish_event")
    def test_transition_publishes_after_commit(
        self, mock_publish, db_session, submission, actor_id
    ) -> None:
        submissions.withdraw(db_session, submission.id, actor_id)
        event_type = mock_publish.call_args.args[0]
        assert event_type == EventType.submission_withdrawn
        assert mock_publish.call_args.kwargs["submission_id"] == submission.id


class TestProcessEventTask:
    @patch("archflow.tasks.webhooks.deliver_webhooks.delay")
    def test_process_event_fans_out(self, mock_webhook_delay: MagicMock) -> None:
        from archflow.tasks.events import process_event

        process_event(
            event_type="fee.paid",
            entity_type="submission_fee",
            entity_id="abc",
            submission_id="sub1",
            payload={"amount": "10.00"},
        )
        mock_webhook_delay.assert_called_once()
        assert mock_webhook_delay.call_args.kwargs["submission_id"] == "sub1"
        assert mock_webhook_delay.call_args.kwargs["payload"] == {"amount": "10.00"}

    @patch("archflow.tasks.webhooks.deliver_webhooks.delay")
    def test_process_event_counts_by_type(self, mock_webhook_delay) -> None:
        from prometheus_client import REGISTRY

        from archflow.tasks.events import process_event

        labels = {"event_type": "share.revoked"}
        before = REGISTRY.get_sample_value("archflow_events_total", labels) or 0
        process_event(
            event_type="share.revoked", entity_type="document_share", entity_id="s1"
        )
        assert REGISTRY.get_sample_value("archflow_events_total", labels) == before + 1

    @patch(
        "archflow.tasks.webhooks.deliver_webhooks.delay",
        side_effect=RuntimeError("fail"),
    )
    def test_fanout_failure_does_not_raise(self, mock_webhook_delay) -> None:
        from archflow.tasks.events import process_event

        process_event(event_type="fee.paid", entity_type="submission_fee", entity_id="x")
        assert mock_webhook_delay.called


class TestWebhookDelivery:
    def test_sign_body(self) -> None:
        from archflow.tasks.webhooks import sign_body

        body = json.dumps({"event_type": "submission.submitted"})
        expected = hmac.new(b"secret", body.encode(), hashlib.sha256).hexdigest()
        assert sign_body("secret", body) == expected

    @patch("archflow.tasks.webhooks.deliver_single_webhook.delay")
    def test_queues_one_delivery_per_url(self, mock_deliver) -> None:
        from archflow.tasks.webhooks import deliver_webhooks

        configured = replace(
            settings,
            webhook_urls=("https://hooks.example.com/a", "https://hooks.example.com/b"),
        )
        with patch("archflow.tasks.webhooks.settings", configured):
            deliver_webhooks(
                event_type="submission.created",
                entity_type="submission",
                entity_id="abc",
            )
        urls = [c.kwargs["url"] for c in mock_deliver.call_args_list]
        assert urls == ["https://hooks.example.com/a", "https://hooks.example.com/b"]

    @patch("archflow.tasks.webhooks.deliver_single_webhook.delay")
    def test_no_urls_configured(self, mock_deliver) -> None:
        from archflow.tasks.webhooks import deliver_webhooks

        deliver_webhooks(event_type="x.y", entity_type="x", entity_id="1")
        assert not mock_deliver.called

    def _client_factory(self, handler):
        real_client = httpx.Client
        transport = httpx.MockTransport(handler)
        return lambda **kwargs: real_client(transport=transport, **kwargs)

    def test_delivers_signed_payload(self) -> None:
        from archflow.tasks.webhooks import deliver_single_webhook, sign_body

        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        configured = replace(settings, webhook_secret="hook-secret")
        payload = {"event_type": "fee.paid", "payload": {"amount": "10.00"}}
        with patch("archflow.tasks.webhooks.settings", configured), patch(
            "httpx.Client", self._client_factory(handler)
        ):
            deliver_single_webhook(url="https://hooks.example.com/a", payload=payload)

        request = seen[0]
        assert request.headers["X-Event-Type"] == "fee.paid"
        assert request.headers["X-Webhook-Signature"] == sign_body(
            "hook-secret", request.content.decode()
        )
        assert json.loads(request.content) == payload

    def test_failed_delivery_retries(self) -> None:
        from archflow.tasks.webhooks import deliver_single_webhook

        def handler(request):
            return httpx.Response(500)

        with patch("httpx.Client", self._client_factory(handler)):
            with pytest.raises(Retry):
                deliver_single_webhook(
                    url="https://hooks.example.com/a",
                    payload={"event_type": "fee.paid"},
                )


class TestExpirySweeps:
    def test_expire_lapsed_submissions(
        self, db_session, session_factory, complete_submission, actor_id
    ) -> None:
        from archflow.tasks.submissions import expire_lapsed_submissions

        submissions.submit(
            db_session, complete_submission.id, actor_id, today=date(2020, 1, 6)
        )
        with patch("archflow.db.SessionLocal", session_factory):
            assert expire_lapsed_submissions() == 1
            assert expire_lapsed_submissions() == 0

        db_session.expire_all()
        stored = submissions.get(db_session, complete_submission.id)
        assert stored.status == SubmissionStatus.expired

    def test_expire_lapsed_shares(
        self, db_session, session_factory, make_document, actor_id
    ) -> None:
        from archflow.tasks.shares import expire_lapsed_shares

        doc = make_document()
        share = document_shares.grant(
            db_session,
            doc.id,
            DocumentShareCreate(
                recipient_email="client@example.com",
                shared_by=actor_id,
                expires_at=datetime.now(timezone.utc) + timedelta(seconds=1),
            ),
        )
        # Backdate past the expiry without going through the service.
        share.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db_session.commit()

        with patch("archflow.db.SessionLocal", session_factory):
            assert expire_lapsed_shares() == 1

        db_session.expire_all()
        assert document_shares.get(db_session, share.id).status == ShareStatus.expired
