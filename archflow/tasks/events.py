import logging

from archflow.celery_app import celery_app
from archflow.observability import EVENTS_PROCESSED

logger = logging.getLogger(__name__)


@celery_app.task(name="archflow.tasks.events.process_event", ignore_result=True)
def process_event(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    document_id: str | None = None,
    submission_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Record a committed domain event and hand it to webhook delivery.

    Runs after the originating transaction, so nothing here may raise back
    into the caller's flow.
    """
    EVENTS_PROCESSED.labels(event_type).inc()
    if submission_id:
        logger.info(
            "Event %s on %s/%s (submission %s)",
            event_type,
            entity_type,
            entity_id,
            submission_id,
        )
    else:
        logger.info("Event %s on %s/%s", event_type, entity_type, entity_id)

    _queue_webhooks(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        document_id=document_id,
        submission_id=submission_id,
        payload=payload or {},
    )


def _queue_webhooks(**event_data) -> None:
    try:
        from archflow.tasks.webhooks import deliver_webhooks

        deliver_webhooks.delay(**event_data)
    except Exception as e:
        logger.exception(
            "Could not queue webhooks for %s: %s", event_data["event_type"], e
        )
