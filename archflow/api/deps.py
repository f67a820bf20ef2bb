from uuid import UUID

from fastapi import Header

from archflow.db import SessionLocal
from archflow.exceptions import ValidationError


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor_id(x_actor_id: str = Header(...)) -> UUID:
    """Caller identity, already resolved upstream and forwarded as a header."""
    try:
        return UUID(x_actor_id)
    except ValueError:
        raise ValidationError(
            "X-Actor-Id must be a UUID",
            details=[{"field": "X-Actor-Id", "message": "must be a UUID"}],
        )
