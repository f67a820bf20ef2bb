from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from archflow.exceptions import ConcurrentModificationError, ValidationError


def coerce_uuid(value):
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(
            f"Invalid identifier: {value}",
            details=[{"field": "id", "message": "must be a UUID"}],
        )


def coerce_enum(enum_cls, value, field: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field}: {value}",
            details=[{"field": field, "message": f"must be one of: {allowed}"}],
        )


def apply_ordering(query, order_by, order_dir, allowed_columns):
    if order_by not in allowed_columns:
        raise ValidationError(
            f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}",
            details=[{"field": "order_by", "message": "unsupported column"}],
        )
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query, limit, offset):
    return query.limit(limit).offset(offset)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utctoday() -> date:
    return utcnow().date()


def ensure_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes for timezone-aware columns."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _is_unique_violation(exc: IntegrityError) -> bool:
    # Postgres reports SQLSTATE 23505; SQLite only says so in the message.
    if getattr(exc.orig, "sqlstate", None) == "23505":
        return True
    return "UNIQUE constraint failed" in str(exc.orig)


def commit_or_conflict(db: Session, entity: str) -> None:
    """Commit, turning lost races into ConcurrentModificationError.

    Versioned rows are written with ``WHERE row_version = <read value>``; a
    stale write raises StaleDataError. Unique constraints that serialise
    appends (version numbers, fee types, audit sequence) raise IntegrityError.
    Any other integrity failure (foreign key, NOT NULL, CHECK) is bad input
    and surfaces as ValidationError. The session is rolled back either way.
    """
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConcurrentModificationError(
            f"{entity} was modified concurrently; reload and retry"
        ) from exc
    except IntegrityError as exc:
        db.rollback()
        if _is_unique_violation(exc):
            raise ConcurrentModificationError(
                f"{entity} was modified concurrently; reload and retry"
            ) from exc
        raise ValidationError(
            f"{entity} violates a data integrity rule",
            details=[{"field": None, "message": str(exc.orig)}],
        ) from exc
