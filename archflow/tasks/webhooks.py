import hashlib
import hmac
import json
import logging

from archflow.celery_app import celery_app
from archflow.config import settings

logger = logging.getLogger(__name__)


def sign_body(secret: str, body: str) -> str:
    return hmac.new(secret.encode(), body.encode(), hashlib.sha256).hexdigest()


@celery_app.task(name="archflow.tasks.webhooks.deliver_webhooks", ignore_result=True)
def deliver_webhooks(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    document_id: str | None = None,
    submission_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Queue one delivery per configured webhook URL."""
    if not settings.webhook_urls:
        logger.debug("No webhook URLs configured; dropping %s", event_type)
        return
    event_data = {
        "event_type": event_type,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "actor_id": actor_id,
        "document_id": document_id,
        "submission_id": submission_id,
        "payload": payload or {},
    }
    for url in settings.webhook_urls:
        deliver_single_webhook.delay(url=url, payload=event_data)
    logger.info(
        "Queued %d webhook deliveries for event %s",
        len(settings.webhook_urls),
        event_type,
    )


@celery_app.task(
    name="archflow.tasks.webhooks.deliver_single_webhook",
    ignore_result=True,
    bind=True,
    max_retries=5,
    default_retry_delay=10,
)
def deliver_single_webhook(
    self: "celery_app.Task",  # type: ignore[name-defined]
    url: str,
    payload: dict,
) -> None:
    """Deliver a single webhook via HTTP POST with HMAC signing."""
    import httpx

    body = json.dumps(payload, default=str)
    headers: dict[str, str] = {
        "Content-Type": "application/json",
        "X-Event-Type": payload.get("event_type", ""),
    }
    if settings.webhook_secret:
        headers["X-Webhook-Signature"] = sign_body(settings.webhook_secret, body)

    failed = False
    try:
        with httpx.Client(timeout=settings.webhook_timeout_seconds) as client:
            resp = client.post(url, content=body, headers=headers)
        if not 200 <= resp.status_code < 300:
            logger.warning("Webhook %s answered HTTP %d", url, resp.status_code)
            failed = True
    except (httpx.HTTPError, OSError) as e:
        logger.warning("Webhook delivery to %s failed: %s", url, e)
        failed = True

    if failed:
        try:
            self.retry(countdown=10 * (2 ** (self.request.retries or 0)))
        except self.MaxRetriesExceededError:
            logger.error("Webhook delivery to %s exhausted retries", url)
