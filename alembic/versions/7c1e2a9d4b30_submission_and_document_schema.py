"""submission and document schema

Revision ID: 7c1e2a9d4b30
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "7c1e2a9d4b30"
down_revision = None
branch_labels = None
depends_on = None


_ENUMS = {
    "authoritystatus": ("active", "inactive", "maintenance"),
    "submissionstatus": (
        "draft",
        "submitted",
        "under_review",
        "approved",
        "rejected",
        "revision_needed",
        "withdrawn",
        "expired",
    ),
    "submissiontype": ("new", "amendment", "renewal", "variation", "extension"),
    "submissionpriority": ("low", "normal", "high", "urgent"),
    "feetype": ("base", "processing", "late", "expedite", "sst"),
    "feestatus": ("unpaid", "paid", "waived"),
    "documentstatus": ("draft", "under_review", "approved", "rejected", "archived"),
    "documentownertype": ("submission", "project", "standalone"),
    "sharepermission": ("view", "comment", "edit"),
    "sharestatus": ("active", "expired", "revoked"),
    "commenttype": ("general", "technical", "approval", "revision"),
    "workflowtype": ("review", "approval", "internal_review"),
    "workflowpolicy": ("sequential", "any_reject"),
    "workflowtargettype": ("document", "submission"),
    "workflowstatus": (
        "in_progress",
        "approved",
        "rejected",
        "returned_for_revision",
        "cancelled",
    ),
    "workflowsteptype": ("review", "approval", "sign_off"),
    "workflowstepstatus": ("pending", "completed", "skipped"),
    "stepaction": ("approved", "rejected", "returned"),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*_ENUMS[name], name=name, create_type=False)


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=True)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return columns


def upgrade() -> None:
    # --- Enums ---
    bind = op.get_bind()
    for name, values in _ENUMS.items():
        sa.Enum(*values, name=name).create(bind, checkfirst=True)

    # --- Authorities ---
    op.create_table(
        "authorities",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("code", sa.String(40), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("jurisdiction", sa.String(255), nullable=False),
        sa.Column("state_code", sa.String(10), nullable=True),
        sa.Column("api_endpoint", sa.String(2048), nullable=True),
        sa.Column("status", _enum("authoritystatus"), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_authorities_code"),
    )

    op.create_table(
        "submission_categories",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("authority_id", sa.UUID(), nullable=False),
        sa.Column("code", sa.String(40), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("fee_schedule", sa.JSON(), nullable=False),
        sa.Column("typical_processing_days", sa.Integer(), nullable=False),
        sa.Column("max_processing_days", sa.Integer(), nullable=False),
        sa.Column("resubmission_window_days", sa.Integer(), nullable=False),
        sa.Column("required_document_types", sa.JSON(), nullable=True),
        sa.Column("required_fields", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["authority_id"], ["authorities.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "authority_id", "code", name="uq_submission_categories_authority_code"
        ),
    )

    # --- Submissions ---
    op.create_table(
        "submissions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("authority_id", sa.UUID(), nullable=False),
        sa.Column("category_id", sa.UUID(), nullable=False),
        sa.Column("internal_reference", sa.String(40), nullable=False),
        sa.Column("submission_number", sa.String(120), nullable=True),
        sa.Column("submission_type", _enum("submissiontype"), nullable=True),
        sa.Column("priority", _enum("submissionpriority"), nullable=True),
        sa.Column("status", _enum("submissionstatus"), nullable=True),
        sa.Column("site_address", sa.String(500), nullable=False),
        sa.Column("building_use", sa.String(120), nullable=False),
        sa.Column("land_area", sa.Numeric(14, 2), nullable=True),
        sa.Column("built_up_area", sa.Numeric(14, 2), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("lodgement_deadline", sa.Date(), nullable=True),
        sa.Column("expedite", sa.Boolean(), nullable=True),
        sa.Column("submission_date", sa.Date(), nullable=True),
        sa.Column("last_submitted_date", sa.Date(), nullable=True),
        sa.Column("expected_completion_date", sa.Date(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("decision_date", sa.Date(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("last_updated_by", sa.UUID(), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["authority_id"], ["authorities.id"]),
        sa.ForeignKeyConstraint(["category_id"], ["submission_categories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "internal_reference", name="uq_submissions_internal_reference"
        ),
    )
    op.create_index("ix_submissions_project_id", "submissions", ["project_id"])
    op.create_index("ix_submissions_status", "submissions", ["status"])
    op.create_index("ix_submissions_authority_id", "submissions", ["authority_id"])

    op.create_table(
        "submission_fees",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("submission_id", sa.UUID(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("fee_type", _enum("feetype"), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("calculation", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", _enum("feestatus"), nullable=True),
        sa.Column("payment_reference", sa.String(120), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("waived_reason", sa.Text(), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["submission_id"], ["submissions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("submission_id", "fee_type", name="uq_submission_fees_type"),
    )
    op.create_index(
        "ix_submission_fees_submission_id", "submission_fees", ["submission_id"]
    )
    op.create_index("ix_submission_fees_status", "submission_fees", ["status"])

    op.create_table(
        "submission_status_changes",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("submission_id", sa.UUID(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("previous_status", _enum("submissionstatus"), nullable=True),
        sa.Column("new_status", _enum("submissionstatus"), nullable=False),
        sa.Column("changed_by", sa.UUID(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("authority_reference", sa.String(120), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["submission_id"], ["submissions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "submission_id", "sequence", name="uq_submission_status_changes_seq"
        ),
    )
    op.create_index(
        "ix_submission_status_changes_submission_id",
        "submission_status_changes",
        ["submission_id"],
    )

    # --- Authority API call log ---
    op.create_table(
        "authority_api_logs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("authority_id", sa.UUID(), nullable=False),
        sa.Column("submission_id", sa.UUID(), nullable=True),
        sa.Column("operation_type", sa.String(60), nullable=False),
        sa.Column("method", sa.String(10), nullable=False),
        sa.Column("endpoint", sa.String(2048), nullable=True),
        sa.Column("response_status_code", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("execution_time_ms", sa.Integer(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("initiated_by", sa.UUID(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["authority_id"], ["authorities.id"]),
        sa.ForeignKeyConstraint(["submission_id"], ["submissions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_authority_api_logs_submission_id", "authority_api_logs", ["submission_id"]
    )
    op.create_index(
        "ix_authority_api_logs_authority_id", "authority_api_logs", ["authority_id"]
    )
    op.create_index(
        "ix_authority_api_logs_created_at", "authority_api_logs", ["created_at"]
    )

    # --- Documents ---
    op.create_table(
        "documents",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("document_type", sa.String(80), nullable=False),
        sa.Column("owner_type", _enum("documentownertype"), nullable=True),
        sa.Column("submission_id", sa.UUID(), nullable=True),
        sa.Column("project_id", sa.UUID(), nullable=True),
        sa.Column("status", _enum("documentstatus"), nullable=True),
        sa.Column("current_version_id", sa.UUID(), nullable=True),
        sa.Column("version_number", sa.Integer(), nullable=True),
        sa.Column("revision_label", sa.String(20), nullable=True),
        sa.Column("content_reference", sa.String(1024), nullable=True),
        sa.Column("file_name", sa.String(500), nullable=True),
        sa.Column("file_size", sa.BigInteger(), nullable=True),
        sa.Column("mime_type", sa.String(255), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["submission_id"], ["submissions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_documents_submission_id", "documents", ["submission_id"])
    op.create_index("ix_documents_project_id", "documents", ["project_id"])
    op.create_index("ix_documents_status", "documents", ["status"])

    op.create_table(
        "document_versions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("revision_label", sa.String(20), nullable=False),
        sa.Column("content_reference", sa.String(1024), nullable=False),
        sa.Column("file_name", sa.String(500), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(255), nullable=False),
        sa.Column("checksum_sha256", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("restored_from_id", sa.UUID(), nullable=True),
        sa.Column("uploaded_by", sa.UUID(), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["restored_from_id"], ["document_versions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "document_id", "version_number", name="uq_document_versions_doc_version"
        ),
    )
    op.create_index(
        "ix_document_versions_document_id", "document_versions", ["document_id"]
    )
    op.create_index(
        "ix_document_versions_content_reference",
        "document_versions",
        ["content_reference"],
    )
    op.create_foreign_key(
        "fk_documents_current_version_id",
        "documents",
        "document_versions",
        ["current_version_id"],
        ["id"],
    )

    op.create_table(
        "document_shares",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("shared_by", sa.UUID(), nullable=False),
        sa.Column("recipient_user_id", sa.UUID(), nullable=True),
        sa.Column("recipient_email", sa.String(320), nullable=True),
        sa.Column("permission_level", _enum("sharepermission"), nullable=False),
        sa.Column("share_token", sa.String(64), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", _enum("sharestatus"), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_by", sa.UUID(), nullable=True),
        sa.Column("revoke_reason", sa.Text(), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("share_token", name="uq_document_shares_token"),
    )
    op.create_index(
        "ix_document_shares_document_id", "document_shares", ["document_id"]
    )
    op.create_index("ix_document_shares_status", "document_shares", ["status"])

    op.create_table(
        "document_comments",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("parent_id", sa.UUID(), nullable=True),
        sa.Column("author_id", sa.UUID(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("comment_type", _enum("commenttype"), nullable=True),
        sa.Column("page_number", sa.Integer(), nullable=True),
        sa.Column("x_position", sa.Float(), nullable=True),
        sa.Column("y_position", sa.Float(), nullable=True),
        sa.Column("is_resolved", sa.Boolean(), nullable=True),
        sa.Column("resolved_by", sa.UUID(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["parent_id"], ["document_comments.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_document_comments_document_id", "document_comments", ["document_id"]
    )
    op.create_index(
        "ix_document_comments_parent_id", "document_comments", ["parent_id"]
    )

    # --- Workflows ---
    op.create_table(
        "workflows",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("workflow_type", _enum("workflowtype"), nullable=True),
        sa.Column("policy", _enum("workflowpolicy"), nullable=True),
        sa.Column("target_type", _enum("workflowtargettype"), nullable=False),
        sa.Column("target_id", sa.UUID(), nullable=False),
        sa.Column("status", _enum("workflowstatus"), nullable=True),
        sa.Column("completed_steps", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("started_by", sa.UUID(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.UUID(), nullable=True),
        sa.Column("outcome_comments", sa.Text(), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_workflows_target", "workflows", ["target_type", "target_id"])
    op.create_index("ix_workflows_status", "workflows", ["status"])

    op.create_table(
        "workflow_steps",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workflow_id", sa.UUID(), nullable=False),
        sa.Column("step_number", sa.Integer(), nullable=False),
        sa.Column("step_type", _enum("workflowsteptype"), nullable=True),
        sa.Column("assignee_id", sa.UUID(), nullable=False),
        sa.Column("status", _enum("workflowstepstatus"), nullable=True),
        sa.Column("action", _enum("stepaction"), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("completed_by", sa.UUID(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["workflow_id"], ["workflows.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "workflow_id", "step_number", name="uq_workflow_steps_number"
        ),
    )
    op.create_index("ix_workflow_steps_workflow_id", "workflow_steps", ["workflow_id"])
    op.create_index("ix_workflow_steps_assignee_id", "workflow_steps", ["assignee_id"])


def downgrade() -> None:
    op.drop_table("workflow_steps")
    op.drop_table("workflows")
    op.drop_table("document_comments")
    op.drop_table("document_shares")
    op.drop_constraint(
        "fk_documents_current_version_id", "documents", type_="foreignkey"
    )
    op.drop_table("document_versions")
    op.drop_table("documents")
    op.drop_table("authority_api_logs")
    op.drop_table("submission_status_changes")
    op.drop_table("submission_fees")
    op.drop_table("submissions")
    op.drop_table("submission_categories")
    op.drop_table("authorities")

    bind = op.get_bind()
    for name in reversed(list(_ENUMS)):
        sa.Enum(name=name).drop(bind, checkfirst=True)
