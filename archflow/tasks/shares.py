import logging

from archflow.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="archflow.tasks.shares.expire_lapsed_shares")
def expire_lapsed_shares() -> int:
    from archflow.db import SessionLocal
    from archflow.services.sharing import document_shares

    db = SessionLocal()
    try:
        return document_shares.expire_lapsed(db)
    finally:
        db.close()
