"""initial schema: solution, upload, skill_definition, workflow_run, spec_document, workflow_step_log

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_RUN_STATUSES = (
    "'pending', 'analyzing', 'questions_open', 'drafting', 'pr_open', 'completed', 'failed'"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade schema - create all flowspec tables."""
    op.create_table(
        "solution",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("owner_email", sa.String(), nullable=True),
        sa.Column("github_repo_name", sa.String(), nullable=True),
        sa.Column(
            "spec_version_counter", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "upload",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("solution_id", sa.String(), nullable=False),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("github_issue_number", sa.Integer(), nullable=True),
        sa.Column("github_pr_number", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["solution_id"], ["solution.id"], ondelete="CASCADE"),
        sa.CheckConstraint(f"status IN ({_RUN_STATUSES})", name="upload_status_check"),
    )
    op.create_index("ix_upload_solution_id", "upload", ["solution_id"])
    op.create_index("ix_upload_status", "upload", ["status"])

    op.create_table(
        "skill_definition",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("connector_id", sa.String(), nullable=False),
        sa.Column("action_name", sa.String(), nullable=True),
        sa.Column("business_meaning", sa.Text(), nullable=True),
        sa.Column("failure_impact", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("connector_id"),
    )

    op.create_table(
        "workflow_run",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("upload_id", sa.String(), nullable=False),
        sa.Column("solution_id", sa.String(), nullable=False),
        sa.Column("variant", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("current_step", sa.String(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("state", sa.JSON(), nullable=False),
        sa.Column("awaiting_event", sa.String(), nullable=True),
        sa.Column("awaiting_step", sa.String(), nullable=True),
        sa.Column("awaiting_correlation_id", sa.Integer(), nullable=True),
        sa.Column("awaiting_repository", sa.String(), nullable=True),
        sa.Column("wait_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["upload_id"], ["upload.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["solution_id"], ["solution.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("upload_id"),
        sa.CheckConstraint(f"status IN ({_RUN_STATUSES})", name="workflow_run_status_check"),
        sa.CheckConstraint(
            "variant IN ('with_questions', 'approval_only')",
            name="workflow_run_variant_check",
        ),
        sa.CheckConstraint(
            "awaiting_event IS NULL OR awaiting_event IN ('ticket.closed', 'request.merged')",
            name="workflow_run_awaiting_event_check",
        ),
    )
    op.create_index("ix_workflow_run_solution_id", "workflow_run", ["solution_id"])
    op.create_index("ix_workflow_run_status", "workflow_run", ["status"])
    op.create_index("ix_workflow_run_wait_deadline", "workflow_run", ["wait_deadline"])
    op.create_index(
        "ix_workflow_run_awaiting",
        "workflow_run",
        ["awaiting_event", "awaiting_correlation_id"],
    )

    op.create_table(
        "spec_document",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("solution_id", sa.String(), nullable=False),
        sa.Column("upload_id", sa.String(), nullable=True),
        sa.Column("workflow_run_id", sa.String(), nullable=True),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("markdown_content", sa.Text(), nullable=False),
        sa.Column("change_reason", sa.Text(), nullable=True),
        sa.Column("github_commit_sha", sa.String(), nullable=True),
        sa.Column("github_pr_number", sa.Integer(), nullable=True),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["solution_id"], ["solution.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["upload_id"], ["upload.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(
            ["workflow_run_id"], ["workflow_run.id"], ondelete="SET NULL"
        ),
        sa.UniqueConstraint(
            "solution_id", "version_number", name="uq_spec_document_version"
        ),
        sa.UniqueConstraint("workflow_run_id"),
    )
    op.create_index("ix_spec_document_solution_id", "spec_document", ["solution_id"])
    op.create_index("ix_spec_document_upload_id", "spec_document", ["upload_id"])
    # At most one current document per solution.
    op.create_index(
        "uq_spec_document_current",
        "spec_document",
        ["solution_id"],
        unique=True,
        postgresql_where=sa.text("is_current"),
        sqlite_where=sa.text("is_current = 1"),
    )

    op.create_table(
        "workflow_step_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("run_id", sa.String(), nullable=True),
        sa.Column("upload_id", sa.String(), nullable=True),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("level", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["run_id"], ["workflow_run.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "level IN ('info', 'warn', 'error')", name="workflow_step_log_level_check"
        ),
    )
    op.create_index("ix_workflow_step_log_run_id", "workflow_step_log", ["run_id"])
    op.create_index("ix_workflow_step_log_upload_id", "workflow_step_log", ["upload_id"])


def downgrade() -> None:
    """Downgrade schema - drop all flowspec tables."""
    op.drop_index("ix_workflow_step_log_upload_id", "workflow_step_log")
    op.drop_index("ix_workflow_step_log_run_id", "workflow_step_log")
    op.drop_table("workflow_step_log")
    op.drop_index("uq_spec_document_current", "spec_document")
    op.drop_index("ix_spec_document_upload_id", "spec_document")
    op.drop_index("ix_spec_document_solution_id", "spec_document")
    op.drop_table("spec_document")
    op.drop_index("ix_workflow_run_awaiting", "workflow_run")
    op.drop_index("ix_workflow_run_wait_deadline", "workflow_run")
    op.drop_index("ix_workflow_run_status", "workflow_run")
    op.drop_index("ix_workflow_run_solution_id", "workflow_run")
    op.drop_table("workflow_run")
    op.drop_table("skill_definition")
    op.drop_index("ix_upload_status", "upload")
    op.drop_index("ix_upload_solution_id", "upload")
    op.drop_table("upload")
    op.drop_table("solution")
