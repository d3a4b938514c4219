"""SpecDocument ORM model: versioned markdown specification per solution."""

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from flowspec.infrastructure.persistence.database import Base
from flowspec.infrastructure.persistence.models.mixins import CuidMixin, TimestampMixin


class SpecDocument(CuidMixin, TimestampMixin, Base):
    """Spec document version. Table: spec_document.

    Rows are inserted as drafts (is_current false) by the generate-spec step
    and promoted by finalize. The partial unique index allows at most one
    current row per solution.
    """

    __tablename__ = "spec_document"
    __table_args__ = (
        UniqueConstraint("solution_id", "version_number", name="uq_spec_document_version"),
        Index(
            "uq_spec_document_current",
            "solution_id",
            unique=True,
            postgresql_where=sa.text("is_current"),
            sqlite_where=sa.text("is_current = 1"),
        ),
    )

    solution_id: Mapped[str] = mapped_column(
        String, ForeignKey("solution.id", ondelete="CASCADE"), nullable=False, index=True
    )
    upload_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("upload.id", ondelete="SET NULL"), nullable=True, index=True
    )
    workflow_run_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("workflow_run.id", ondelete="SET NULL"), nullable=True, unique=True
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    markdown_content: Mapped[str] = mapped_column(Text, nullable=False)
    change_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    github_commit_sha: Mapped[str | None] = mapped_column(String, nullable=True)
    github_pr_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_current: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.false()
    )
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
