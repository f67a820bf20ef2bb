from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from archflow.config import settings
from archflow.exceptions import (
    InvalidStateTransitionError,
    NotFoundError,
    PasswordRequiredError,
    ShareExpiredError,
    ShareRevokedError,
    ValidationError,
)
from archflow.models.document import Document, DocumentShare, ShareStatus
from archflow.schemas.sharing import DocumentShareCreate
from archflow.services.common import (
    coerce_enum,
    coerce_uuid,
    commit_or_conflict,
    ensure_utc,
    utcnow,
)
from archflow.services.event import EventType, publish_event
from archflow.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_HASH_SCHEME = "pbkdf2_sha256"


def hash_password(password: str, iterations: int | None = None) -> str:
    iterations = iterations or settings.share_password_iterations
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), salt.encode(), iterations
    ).hex()
    return f"{_HASH_SCHEME}${iterations}${salt}${digest}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        scheme, iterations, salt, expected = encoded.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        logger.error("Malformed share password hash")
        return False
    if scheme != _HASH_SCHEME:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), salt.encode(), rounds
    ).hex()
    return hmac.compare_digest(digest, expected)


def _get_share(db: Session, share_id) -> DocumentShare:
    share = db.get(DocumentShare, coerce_uuid(share_id))
    if not share:
        raise NotFoundError("Share not found")
    return share


def _is_lapsed(share: DocumentShare, now: datetime) -> bool:
    expires_at = ensure_utc(share.expires_at)
    return expires_at is not None and expires_at <= now


class DocumentShares(ListResponseMixin):
    @staticmethod
    def grant(
        db: Session, document_id: str, payload: DocumentShareCreate
    ) -> DocumentShare:
        document = db.get(Document, coerce_uuid(document_id))
        if not document:
            raise NotFoundError("Document not found")
        if not document.is_active:
            raise InvalidStateTransitionError("Document is archived")

        errors = []
        if (payload.recipient_user_id is None) == (not payload.recipient_email):
            errors.append(
                {
                    "field": "recipient",
                    "message": "set exactly one of recipient_user_id or recipient_email",
                }
            )
        if payload.shared_by is None:
            errors.append({"field": "shared_by", "message": "is required"})
        expires_at = ensure_utc(payload.expires_at)
        if expires_at is not None and expires_at <= utcnow():
            errors.append({"field": "expires_at", "message": "must be in the future"})
        if errors:
            raise ValidationError("Invalid share", details=errors)

        share = DocumentShare(
            document_id=document.id,
            shared_by=payload.shared_by,
            recipient_user_id=payload.recipient_user_id,
            recipient_email=payload.recipient_email,
            permission_level=payload.permission_level,
            share_token=secrets.token_urlsafe(32),
            password_hash=hash_password(payload.password) if payload.password else None,
            expires_at=expires_at,
        )
        db.add(share)
        commit_or_conflict(db, "Share")
        db.refresh(share)
        logger.info("Granted share %s on document %s", share.id, document.id)
        publish_event(
            EventType.share_granted,
            entity_type="document_share",
            entity_id=share.id,
            actor_id=share.shared_by,
            document_id=document.id,
            payload={"permission_level": share.permission_level.value},
        )
        return share

    @staticmethod
    def get(db: Session, share_id: str) -> DocumentShare:
        return _get_share(db, share_id)

    @staticmethod
    def get_by_token(db: Session, token: str) -> DocumentShare:
        share = db.scalars(
            select(DocumentShare).where(DocumentShare.share_token == token)
        ).first()
        if not share:
            raise NotFoundError("Share not found")
        return share

    @staticmethod
    def list(
        db: Session,
        document_id: str,
        status: str | None,
        limit: int,
        offset: int,
    ) -> list[DocumentShare]:
        query = db.query(DocumentShare).filter(
            DocumentShare.document_id == coerce_uuid(document_id)
        )
        if status is not None:
            query = query.filter(
                DocumentShare.status == coerce_enum(ShareStatus, status, "status")
            )
        query = query.order_by(DocumentShare.created_at.asc())
        return query.limit(limit).offset(offset).all()

    @staticmethod
    def revoke(
        db: Session, share_id: str, actor_id, reason: str | None = None
    ) -> DocumentShare:
        share = _get_share(db, share_id)
        if share.status == ShareStatus.revoked:
            return share
        share.status = ShareStatus.revoked
        share.revoked_at = utcnow()
        share.revoked_by = coerce_uuid(actor_id)
        share.revoke_reason = reason
        commit_or_conflict(db, "Share")
        db.refresh(share)
        logger.info("Revoked share %s", share.id)
        publish_event(
            EventType.share_revoked,
            entity_type="document_share",
            entity_id=share.id,
            actor_id=actor_id,
            document_id=share.document_id,
        )
        return share

    @staticmethod
    def check_access(
        db: Session,
        share_id: str,
        password: str | None = None,
        now: datetime | None = None,
    ) -> DocumentShare:
        """Validate that a share may be used right now.

        Revocation wins over everything, including a correct password.
        Expiry is persisted the first time it is noticed so the share stays
        inert even if its ``expires_at`` is later edited.
        """
        share = _get_share(db, share_id)
        return DocumentShares._check(db, share, password, now or utcnow())

    @staticmethod
    def check_token_access(
        db: Session,
        token: str,
        password: str | None = None,
        now: datetime | None = None,
    ) -> DocumentShare:
        share = DocumentShares.get_by_token(db, token)
        return DocumentShares._check(db, share, password, now or utcnow())

    @staticmethod
    def _check(
        db: Session, share: DocumentShare, password: str | None, now: datetime
    ) -> DocumentShare:
        if share.status == ShareStatus.revoked:
            raise ShareRevokedError("Share has been revoked")
        if share.status == ShareStatus.expired:
            raise ShareExpiredError("Share has expired")
        if _is_lapsed(share, now):
            DocumentShares._mark_expired(db, share)
            raise ShareExpiredError("Share has expired")
        if share.password_hash is not None:
            if not password or not verify_password(password, share.password_hash):
                raise PasswordRequiredError("A valid password is required")
        return share

    @staticmethod
    def _mark_expired(db: Session, share: DocumentShare) -> None:
        share.status = ShareStatus.expired
        commit_or_conflict(db, "Share")
        logger.info("Share %s expired", share.id)
        publish_event(
            EventType.share_expired,
            entity_type="document_share",
            entity_id=share.id,
            document_id=share.document_id,
        )

    @staticmethod
    def expire_lapsed(db: Session, now: datetime | None = None) -> int:
        now = now or utcnow()
        candidates = db.scalars(
            select(DocumentShare)
            .where(DocumentShare.status == ShareStatus.active)
            .where(DocumentShare.expires_at.is_not(None))
        ).all()
        expired = 0
        for share in candidates:
            if _is_lapsed(share, now):
                DocumentShares._mark_expired(db, share)
                expired += 1
        if expired:
            logger.info("Expired %d lapsed shares", expired)
        return expired


document_shares = DocumentShares()
