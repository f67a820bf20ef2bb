from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from archflow.exceptions import (
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
    VersionNotFoundError,
)
from archflow.models.document import (
    Document,
    DocumentOwnerType,
    DocumentStatus,
    DocumentVersion,
)
from archflow.models.submission import Submission
from archflow.schemas.document import (
    DocumentCreate,
    DocumentUpdate,
    DocumentVersionCreate,
)
from archflow.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_enum,
    coerce_uuid,
    commit_or_conflict,
)
from archflow.services.event import EventType, publish_event
from archflow.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_VERSION_FIELDS = ("content_reference", "file_name", "file_size", "mime_type")


def _get_document(db: Session, document_id) -> Document:
    document = db.get(Document, coerce_uuid(document_id))
    if not document:
        raise NotFoundError("Document not found")
    return document


def _ensure_writable(document: Document) -> None:
    if not document.is_active or document.status == DocumentStatus.archived:
        raise InvalidStateTransitionError("Document is archived")
    if document.status == DocumentStatus.under_review:
        raise InvalidStateTransitionError(
            "Document is under review; finish or cancel the workflow first"
        )


def _append_version(
    db: Session, document: Document, version: DocumentVersion
) -> DocumentVersion:
    """Add ``version`` as N+1 and move the document's current pointer to it.

    Prior versions are never touched. Two uploads racing for the same number
    collide on the (document_id, version_number) unique constraint, and the
    document row itself is guarded by its row_version.
    """
    next_version = document.version_number + 1
    version.document_id = document.id
    version.version_number = next_version
    version.revision_label = str(next_version)
    db.add(version)
    db.flush()

    document.current_version_id = version.id
    document.version_number = next_version
    document.revision_label = version.revision_label
    for field in _VERSION_FIELDS:
        setattr(document, field, getattr(version, field))
    # Approval applies to the reviewed revision only.
    if document.status in (DocumentStatus.approved, DocumentStatus.rejected):
        document.status = DocumentStatus.draft
    return version


class Documents(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: DocumentCreate) -> Document:
        errors = []
        if payload.created_by is None:
            errors.append({"field": "created_by", "message": "is required"})
        if payload.owner_type == DocumentOwnerType.submission:
            if payload.submission_id is None:
                errors.append({"field": "submission_id", "message": "is required"})
        elif payload.submission_id is not None:
            errors.append(
                {
                    "field": "submission_id",
                    "message": "only allowed when owner_type is submission",
                }
            )
        if payload.owner_type == DocumentOwnerType.project:
            if payload.project_id is None:
                errors.append({"field": "project_id", "message": "is required"})
        if errors:
            raise ValidationError("Invalid document", details=errors)

        project_id = payload.project_id
        if payload.owner_type == DocumentOwnerType.submission:
            submission = db.get(Submission, coerce_uuid(payload.submission_id))
            if not submission:
                raise NotFoundError("Submission not found")
            project_id = project_id or submission.project_id

        document = Document(
            title=payload.title,
            description=payload.description,
            document_type=payload.document_type,
            owner_type=payload.owner_type,
            submission_id=payload.submission_id,
            project_id=project_id,
            tags=payload.tags,
            metadata_=payload.metadata_,
            created_by=payload.created_by,
        )
        db.add(document)
        db.flush()

        version = _append_version(
            db,
            document,
            DocumentVersion(
                content_reference=payload.content_reference,
                file_name=payload.file_name,
                file_size=payload.file_size,
                mime_type=payload.mime_type,
                checksum_sha256=payload.checksum_sha256,
                notes=payload.notes,
                uploaded_by=payload.created_by,
            ),
        )
        commit_or_conflict(db, "Document")
        db.refresh(document)
        logger.info("Created document %s with version %s", document.id, version.id)
        publish_event(
            EventType.document_created,
            entity_type="document",
            entity_id=document.id,
            actor_id=document.created_by,
            document_id=document.id,
            submission_id=document.submission_id,
            payload={"document_type": document.document_type},
        )
        return document

    @staticmethod
    def get(db: Session, document_id: str) -> Document:
        return _get_document(db, document_id)

    @staticmethod
    def list(
        db: Session,
        submission_id: str | None,
        project_id: str | None,
        owner_type: str | None,
        status: str | None,
        document_type: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Document]:
        stmt = select(Document)
        if submission_id is not None:
            stmt = stmt.where(Document.submission_id == coerce_uuid(submission_id))
        if project_id is not None:
            stmt = stmt.where(Document.project_id == coerce_uuid(project_id))
        if owner_type is not None:
            owner_type = coerce_enum(DocumentOwnerType, owner_type, "owner_type")
            stmt = stmt.where(Document.owner_type == owner_type)
        if status is not None:
            stmt = stmt.where(
                Document.status == coerce_enum(DocumentStatus, status, "status")
            )
        if document_type is not None:
            stmt = stmt.where(Document.document_type == document_type)
        if is_active is None:
            stmt = stmt.where(Document.is_active.is_(True))
        else:
            stmt = stmt.where(Document.is_active == is_active)
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "created_at": Document.created_at,
                "updated_at": Document.updated_at,
                "title": Document.title,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(db: Session, document_id: str, payload: DocumentUpdate) -> Document:
        document = _get_document(db, document_id)
        if not document.is_active:
            raise InvalidStateTransitionError("Document is archived")
        data = payload.model_dump(exclude_unset=True)
        for key, value in data.items():
            setattr(document, key, value)
        commit_or_conflict(db, "Document")
        db.refresh(document)
        logger.info("Updated document %s", document.id)
        publish_event(
            EventType.document_updated,
            entity_type="document",
            entity_id=document.id,
            document_id=document.id,
            payload={"changed_fields": list(data.keys())},
        )
        return document

    @staticmethod
    def archive(db: Session, document_id: str, actor_id=None) -> Document:
        document = _get_document(db, document_id)
        if not document.is_active:
            return document
        if document.status == DocumentStatus.under_review:
            raise InvalidStateTransitionError(
                "Document is under review; finish or cancel the workflow first"
            )
        document.is_active = False
        document.status = DocumentStatus.archived
        commit_or_conflict(db, "Document")
        db.refresh(document)
        logger.info("Archived document %s", document.id)
        publish_event(
            EventType.document_archived,
            entity_type="document",
            entity_id=document.id,
            actor_id=actor_id,
            document_id=document.id,
        )
        return document

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    @staticmethod
    def upload_version(
        db: Session, document_id: str, payload: DocumentVersionCreate
    ) -> DocumentVersion:
        document = _get_document(db, document_id)
        _ensure_writable(document)
        if payload.uploaded_by is None:
            raise ValidationError(
                "Uploader is required",
                details=[{"field": "uploaded_by", "message": "is required"}],
            )
        version = _append_version(db, document, DocumentVersion(**payload.model_dump()))
        commit_or_conflict(db, "Document")
        db.refresh(version)
        logger.info(
            "Created version %s (v%d) for document %s",
            version.id,
            version.version_number,
            document.id,
        )
        publish_event(
            EventType.version_created,
            entity_type="document_version",
            entity_id=version.id,
            actor_id=version.uploaded_by,
            document_id=document.id,
            payload={"version_number": version.version_number},
        )
        return version

    @staticmethod
    def get_version(db: Session, document_id: str, version_id: str) -> DocumentVersion:
        version = db.get(DocumentVersion, coerce_uuid(version_id))
        if not version or version.document_id != coerce_uuid(document_id):
            raise VersionNotFoundError("Document version not found")
        return version

    @staticmethod
    def list_versions(db: Session, document_id: str) -> list[DocumentVersion]:
        document = _get_document(db, document_id)
        stmt = (
            select(DocumentVersion)
            .where(DocumentVersion.document_id == document.id)
            .order_by(DocumentVersion.version_number.asc())
        )
        return db.scalars(stmt).all()

    @staticmethod
    def restore_version(
        db: Session,
        document_id: str,
        version_id: str,
        actor_id,
        notes: str | None = None,
    ) -> DocumentVersion:
        """Make an earlier version current again by copying it forward.

        The restored content becomes a new version at the end of the
        sequence; history is never rewritten.
        """
        document = _get_document(db, document_id)
        target = Documents.get_version(db, document_id, version_id)
        _ensure_writable(document)
        if actor_id is None:
            raise ValidationError(
                "Actor is required",
                details=[{"field": "actor_id", "message": "is required"}],
            )

        version = _append_version(
            db,
            document,
            DocumentVersion(
                content_reference=target.content_reference,
                file_name=target.file_name,
                file_size=target.file_size,
                mime_type=target.mime_type,
                checksum_sha256=target.checksum_sha256,
                notes=notes or f"Restored from revision {target.revision_label}",
                restored_from_id=target.id,
                uploaded_by=coerce_uuid(actor_id),
            ),
        )
        commit_or_conflict(db, "Document")
        db.refresh(version)
        logger.info(
            "Restored version %s of document %s as v%d",
            target.id,
            document.id,
            version.version_number,
        )
        publish_event(
            EventType.version_restored,
            entity_type="document_version",
            entity_id=version.id,
            actor_id=actor_id,
            document_id=document.id,
            payload={
                "version_number": version.version_number,
                "restored_from_id": str(target.id),
            },
        )
        return version


documents = Documents()
