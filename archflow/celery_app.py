from celery import Celery

from archflow.config import settings


def create_celery_app() -> Celery:
    """Initialize the Celery application."""
    app = Celery(
        "archflow",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
        include=[
            "archflow.tasks.events",
            "archflow.tasks.webhooks",
            "archflow.tasks.submissions",
            "archflow.tasks.shares",
        ],
    )
    app.conf.update(
        task_default_queue="archflow",
        task_always_eager=settings.celery_task_always_eager,
        task_acks_late=True,
        timezone="UTC",
        enable_utc=True,
        beat_schedule={
            "expire-lapsed-submissions": {
                "task": "archflow.tasks.submissions.expire_lapsed_submissions",
                "schedule": float(settings.expiry_sweep_interval_seconds),
            },
            "expire-lapsed-shares": {
                "task": "archflow.tasks.shares.expire_lapsed_shares",
                "schedule": float(settings.expiry_sweep_interval_seconds),
            },
        },
    )
    return app


celery_app = create_celery_app()
