import logging

from archflow.celery_app import celery_app
from archflow.exceptions import CoreError

logger = logging.getLogger(__name__)


@celery_app.task(name="archflow.tasks.submissions.expire_lapsed_submissions")
def expire_lapsed_submissions() -> int:
    """Move every submission past its expiry date to ``expired``."""
    from archflow.db import SessionLocal
    from archflow.services.submission import submissions

    db = SessionLocal()
    expired = 0
    try:
        for submission_id in submissions.lapsed(db):
            try:
                submissions.expire(db, submission_id)
                expired += 1
            except CoreError as e:
                # Someone else moved it first; the next sweep sees the new state.
                logger.warning("Could not expire submission %s: %s", submission_id, e)
    finally:
        db.close()
    logger.info("Expired %d lapsed submissions", expired)
    return expired
