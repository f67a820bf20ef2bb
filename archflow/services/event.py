from __future__ import annotations

import enum
import logging
import uuid

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    submission_created = "submission.created"
    submission_updated = "submission.updated"
    submission_submitted = "submission.submitted"
    submission_status_changed = "submission.status_changed"
    submission_withdrawn = "submission.withdrawn"
    submission_expired = "submission.expired"

    fee_paid = "fee.paid"
    fee_waived = "fee.waived"

    document_created = "document.created"
    document_updated = "document.updated"
    document_archived = "document.archived"

    version_created = "version.created"
    version_restored = "version.restored"

    comment_created = "comment.created"
    comment_resolved = "comment.resolved"
    comment_deleted = "comment.deleted"

    workflow_started = "workflow.started"
    workflow_step_completed = "workflow.step_completed"
    workflow_completed = "workflow.completed"
    workflow_cancelled = "workflow.cancelled"

    share_granted = "share.granted"
    share_revoked = "share.revoked"
    share_expired = "share.expired"


def publish_event(
    event_type: EventType,
    entity_type: str,
    entity_id: str | uuid.UUID,
    actor_id: str | uuid.UUID | None = None,
    document_id: str | uuid.UUID | None = None,
    submission_id: str | uuid.UUID | None = None,
    payload: dict | None = None,
) -> None:
    """Fire-and-forget event publishing, called after the state change commits.

    Queues a Celery task for fan-out to webhooks. A broker outage must not
    undo a committed transition, so failures are logged with their traceback
    and the caller continues.
    """
    try:
        from archflow.tasks.events import process_event

        process_event.delay(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor_id=str(actor_id) if actor_id else None,
            document_id=str(document_id) if document_id else None,
            submission_id=str(submission_id) if submission_id else None,
            payload=payload or {},
        )
        logger.debug(
            "Published event %s for %s/%s", event_type.value, entity_type, entity_id
        )
    except Exception as e:
        logger.exception("Failed to publish event %s: %s", event_type.value, e)
