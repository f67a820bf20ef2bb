import os
import uuid
from decimal import Decimal

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["WEBHOOK_URLS"] = ""
os.environ["SHARE_PASSWORD_ITERATIONS"] = "1000"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from archflow.api.deps import get_db  # noqa: E402
from archflow.db import Base, get_engine  # noqa: E402
from archflow.main import app  # noqa: E402
from archflow.models import (  # noqa: E402
    Authority,
    DocumentOwnerType,
    SubmissionCategory,
)
from archflow.schemas.document import DocumentCreate  # noqa: E402
from archflow.schemas.submission import SubmissionCreate  # noqa: E402
from archflow.services.document import documents  # noqa: E402
from archflow.services.submission import submissions  # noqa: E402

FEE_SCHEDULE = {
    "currency": "MYR",
    "base_fee": "1000.00",
    "area_rate": "2.00",
    "min_fee": "1500.00",
    "processing_fee": "200.00",
    "late_fee": {"grace_days": 7, "rate": "0.10"},
    "expedite": {"rate": "0.50"},
    "sst_rate": "0.06",
}

REQUIRED_DOCUMENT_TYPES = ["architectural_plan", "site_plan"]


@pytest.fixture()
def engine(tmp_path):
    # File-backed so separate sessions see each other's commits.
    engine = get_engine(f"sqlite:///{tmp_path / 'archflow.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def client(session_factory):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def actor_id():
    return uuid.uuid4()


@pytest.fixture()
def auth_headers(actor_id):
    return {"X-Actor-Id": str(actor_id)}


@pytest.fixture()
def authority(db_session):
    authority = Authority(
        code=f"DBKL-{uuid.uuid4().hex[:6]}",
        name="Dewan Bandaraya Kuala Lumpur",
        jurisdiction="Kuala Lumpur",
        state_code="KUL",
        api_endpoint="https://osc.example.gov.my/api",
    )
    db_session.add(authority)
    db_session.commit()
    db_session.refresh(authority)
    return authority


@pytest.fixture()
def category(db_session, authority):
    category = SubmissionCategory(
        authority_id=authority.id,
        code="BP",
        name="Building Plan Approval",
        fee_schedule=FEE_SCHEDULE,
        typical_processing_days=10,
        max_processing_days=30,
        resubmission_window_days=14,
        required_document_types=REQUIRED_DOCUMENT_TYPES,
        required_fields=["lot_number"],
    )
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture()
def make_submission(db_session, authority, category, actor_id):
    def _make(**overrides):
        data = {
            "project_id": uuid.uuid4(),
            "authority_id": authority.id,
            "category_id": category.id,
            "site_address": "Lot 12, Jalan Ampang, Kuala Lumpur",
            "building_use": "residential",
            "built_up_area": Decimal("400"),
            "details": {"lot_number": "PT 1234"},
            "created_by": actor_id,
        }
        data.update(overrides)
        return submissions.create(db_session, SubmissionCreate(**data))

    return _make


@pytest.fixture()
def make_document(db_session, actor_id):
    def _make(submission=None, document_type="architectural_plan", **overrides):
        data = {
            "title": f"{document_type} {uuid.uuid4().hex[:6]}",
            "document_type": document_type,
            "owner_type": (
                DocumentOwnerType.submission
                if submission is not None
                else DocumentOwnerType.standalone
            ),
            "submission_id": submission.id if submission is not None else None,
            "content_reference": f"s3://drawings/{uuid.uuid4().hex}.pdf",
            "file_name": f"{document_type}.pdf",
            "file_size": 2048,
            "mime_type": "application/pdf",
            "created_by": actor_id,
        }
        data.update(overrides)
        return documents.create(db_session, DocumentCreate(**data))

    return _make


@pytest.fixture()
def submission(make_submission):
    return make_submission()


@pytest.fixture()
def complete_submission(submission, make_document):
    """A draft with every document its category requires."""
    for document_type in REQUIRED_DOCUMENT_TYPES:
        make_document(submission, document_type)
    return submission
