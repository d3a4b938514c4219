"""WorkflowRun and WorkflowStepLog ORM models. Durable spec review workflow."""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from flowspec.infrastructure.persistence.database import Base
from flowspec.infrastructure.persistence.models.mixins import CuidMixin, TimestampMixin
from flowspec.shared.enums import (
    StepLogLevel,
    WaitEvent,
    WorkflowRunStatus,
    WorkflowVariant,
)


def _in_values(column: str, values: list[str]) -> str:
    return f"{column} IN (" + ", ".join(f"'{v}'" for v in values) + ")"


class WorkflowRun(CuidMixin, TimestampMixin, Base):
    """One spec review run per upload. Table: workflow_run.

    state holds {"steps": {step_name: result}, "waits": {wait_name: event}};
    everything a replay needs is in this row. The awaiting_* columns describe
    the event the run is suspended on (all NULL when it is not suspended).
    """

    __tablename__ = "workflow_run"
    __table_args__ = (
        CheckConstraint(
            _in_values("status", WorkflowRunStatus.values()),
            name="workflow_run_status_check",
        ),
        CheckConstraint(
            _in_values("variant", WorkflowVariant.values()),
            name="workflow_run_variant_check",
        ),
        CheckConstraint(
            "awaiting_event IS NULL OR " + _in_values("awaiting_event", WaitEvent.values()),
            name="workflow_run_awaiting_event_check",
        ),
        Index(
            "ix_workflow_run_awaiting",
            "awaiting_event",
            "awaiting_correlation_id",
        ),
    )

    upload_id: Mapped[str] = mapped_column(
        String, ForeignKey("upload.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    solution_id: Mapped[str] = mapped_column(
        String, ForeignKey("solution.id", ondelete="CASCADE"), nullable=False, index=True
    )
    variant: Mapped[str] = mapped_column(
        String, nullable=False, default=WorkflowVariant.WITH_QUESTIONS.value
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=WorkflowRunStatus.PENDING.value, index=True
    )
    current_step: Mapped[str | None] = mapped_column(String, nullable=True)
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    state: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    awaiting_event: Mapped[str | None] = mapped_column(String, nullable=True)
    awaiting_step: Mapped[str | None] = mapped_column(String, nullable=True)
    awaiting_correlation_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    awaiting_repository: Mapped[str | None] = mapped_column(String, nullable=True)
    wait_deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class WorkflowStepLog(Base):
    """Append-only step event log. Table: workflow_step_log. Ordered by id."""

    __tablename__ = "workflow_step_log"
    __table_args__ = (
        CheckConstraint(
            _in_values("level", StepLogLevel.values()),
            name="workflow_step_log_level_check",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("workflow_run.id", ondelete="CASCADE"), nullable=True, index=True
    )
    upload_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    source: Mapped[str] = mapped_column(String, nullable=False)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    level: Mapped[str] = mapped_column(
        String, nullable=False, default=StepLogLevel.INFO.value
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    log_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
