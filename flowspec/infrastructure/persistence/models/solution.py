"""Solution and Upload ORM models."""

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from flowspec.infrastructure.persistence.database import Base
from flowspec.infrastructure.persistence.models.mixins import CuidMixin, TimestampMixin
from flowspec.shared.enums import UploadStatus


class Solution(CuidMixin, TimestampMixin, Base):
    """Business grouping that owns uploads and spec documents. Table: solution.

    spec_version_counter is the monotonic counter used to hand out spec
    version numbers; it only ever moves forward.
    """

    __tablename__ = "solution"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    owner_email: Mapped[str | None] = mapped_column(String, nullable=True)
    github_repo_name: Mapped[str | None] = mapped_column(String, nullable=True)
    spec_version_counter: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )


class Upload(CuidMixin, TimestampMixin, Base):
    """An uploaded package archive for a solution. Table: upload."""

    __tablename__ = "upload"
    __table_args__ = (
        CheckConstraint(
            "status IN (" + ", ".join(f"'{v}'" for v in UploadStatus.values()) + ")",
            name="upload_status_check",
        ),
    )

    solution_id: Mapped[str] = mapped_column(
        String, ForeignKey("solution.id", ondelete="CASCADE"), nullable=False, index=True
    )
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=UploadStatus.PENDING.value, index=True
    )
    github_issue_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    github_pr_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
