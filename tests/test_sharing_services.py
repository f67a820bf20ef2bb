import uuid
from datetime import datetime, timedelta, timezone

import pytest

from archflow.exceptions import (
    InvalidStateTransitionError,
    NotFoundError,
    PasswordRequiredError,
    ShareExpiredError,
    ShareRevokedError,
    ValidationError,
)
from archflow.models import SharePermission, ShareStatus
from archflow.schemas.sharing import DocumentShareCreate
from archflow.services.document import documents
from archflow.services.sharing import document_shares, hash_password, verify_password


def _grant(db_session, document, actor_id, **overrides):
    data = {
        "recipient_email": "engineer@consultant.example.com",
        "permission_level": SharePermission.comment,
        "expires_at": datetime.now(timezone.utc) + timedelta(days=7),
        "shared_by": actor_id,
    }
    data.update(overrides)
    return document_shares.grant(db_session, document.id, DocumentShareCreate(**data))


class TestPasswordHashing:
    def test_round_trip(self) -> None:
        encoded = hash_password("s3cret", iterations=1000)
        assert encoded.startswith("pbkdf2_sha256$1000$")
        assert verify_password("s3cret", encoded)
        assert not verify_password("wrong", encoded)

    def test_salted(self) -> None:
        assert hash_password("same", iterations=1000) != hash_password(
            "same", iterations=1000
        )

    def test_malformed_hash(self) -> None:
        assert not verify_password("anything", "not-a-hash")


class TestGrantShare:
    def test_grant(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        share = _grant(db_session, doc, actor_id)
        assert share.status == ShareStatus.active
        assert share.permission_level == SharePermission.comment
        assert len(share.share_token) >= 32
        assert share.password_protected is False

    def test_exactly_one_recipient(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        with pytest.raises(ValidationError):
            _grant(db_session, doc, actor_id, recipient_user_id=uuid.uuid4())
        with pytest.raises(ValidationError):
            _grant(db_session, doc, actor_id, recipient_email=None)

    def test_expiry_must_be_future(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        with pytest.raises(ValidationError) as exc_info:
            _grant(
                db_session,
                doc,
                actor_id,
                expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
            )
        assert exc_info.value.details[0]["field"] == "expires_at"

    def test_archived_document(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        documents.archive(db_session, doc.id, actor_id)
        with pytest.raises(InvalidStateTransitionError):
            _grant(db_session, doc, actor_id)

    def test_unknown_document(self, db_session, actor_id) -> None:
        with pytest.raises(NotFoundError):
            document_shares.grant(
                db_session,
                uuid.uuid4(),
                DocumentShareCreate(recipient_email="a@b.example", shared_by=actor_id),
            )


class TestCheckAccess:
    def test_password_protected(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        share = _grant(db_session, doc, actor_id, password="open-sesame")
        assert share.password_protected is True

        with pytest.raises(PasswordRequiredError):
            document_shares.check_access(db_session, share.id)
        with pytest.raises(PasswordRequiredError):
            document_shares.check_access(db_session, share.id, "wrong")
        assert document_shares.check_access(db_session, share.id, "open-sesame").id == (
            share.id
        )

    def test_token_access(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        share = _grant(db_session, doc, actor_id)
        found = document_shares.check_token_access(db_session, share.share_token)
        assert found.id == share.id
        with pytest.raises(NotFoundError):
            document_shares.check_token_access(db_session, "no-such-token")

    def test_revoked_wins_over_password(
        self, db_session, make_document, actor_id
    ) -> None:
        doc = make_document()
        share = _grant(db_session, doc, actor_id, password="open-sesame")
        revoked = document_shares.revoke(db_session, share.id, actor_id, "Contract ended")
        assert revoked.status == ShareStatus.revoked
        assert revoked.revoke_reason == "Contract ended"
        with pytest.raises(ShareRevokedError):
            document_shares.check_access(db_session, share.id, "open-sesame")

    def test_revoked_wins_over_expiry(
        self, db_session, make_document, actor_id
    ) -> None:
        doc = make_document()
        share = _grant(db_session, doc, actor_id)
        document_shares.revoke(db_session, share.id, actor_id)
        later = datetime.now(timezone.utc) + timedelta(days=30)
        with pytest.raises(ShareRevokedError):
            document_shares.check_access(db_session, share.id, now=later)

    def test_revoke_is_idempotent(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        share = _grant(db_session, doc, actor_id)
        first = document_shares.revoke(db_session, share.id, actor_id, "first")
        second = document_shares.revoke(db_session, share.id, uuid.uuid4(), "second")
        assert second.revoke_reason == "first"
        assert second.revoked_by == first.revoked_by

    def test_lapsed_share_is_persisted_as_expired(
        self, db_session, make_document, actor_id
    ) -> None:
        doc = make_document()
        share = _grant(db_session, doc, actor_id)
        later = datetime.now(timezone.utc) + timedelta(days=8)
        with pytest.raises(ShareExpiredError):
            document_shares.check_access(db_session, share.id, now=later)
        assert document_shares.get(db_session, share.id).status == ShareStatus.expired
        # Stays expired even when checked before the original expiry.
        with pytest.raises(ShareExpiredError):
            document_shares.check_access(db_session, share.id)


class TestExpireLapsed:
    def test_sweep(self, db_session, make_document, actor_id) -> None:
        doc = make_document()
        soon = _grant(db_session, doc, actor_id)
        _grant(
            db_session,
            doc,
            actor_id,
            expires_at=datetime.now(timezone.utc) + timedelta(days=60),
        )
        _grant(db_session, doc, actor_id, expires_at=None)

        later = datetime.now(timezone.utc) + timedelta(days=10)
        assert document_shares.expire_lapsed(db_session, later) == 1
        assert document_shares.get(db_session, soon.id).status == ShareStatus.expired
        assert document_shares.expire_lapsed(db_session, later) == 0

        active = document_shares.list(db_session, doc.id, "active", 50, 0)
        assert len(active) == 2
