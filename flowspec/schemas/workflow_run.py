"""Workflow run API schemas."""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class WorkflowRunResponse(BaseModel):
    """Workflow run status."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    upload_id: str
    solution_id: str
    variant: str
    status: str
    current_step: str | None
    attempts: int
    awaiting_event: str | None
    awaiting_correlation_id: int | None
    wait_deadline: datetime | None
    error_message: str | None
    completed_at: datetime | None = None
    completed_steps: list[str] = Field(default_factory=list)


class WorkflowStepLogResponse(BaseModel):
    """One step event of a run."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    event_type: str
    level: str
    message: str
    metadata: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("log_metadata", "metadata")
    )
    created_at: datetime | None = None


class WorkflowRunDetailResponse(WorkflowRunResponse):
    """Workflow run status with its step event log."""

    events: list[WorkflowStepLogResponse] = Field(default_factory=list)


class ExpireWaitsResponse(BaseModel):
    """Result of expiring overdue waits."""

    expired: int


class RedriveStalledResponse(BaseModel):
    """Result of re-driving runs that stopped between steps."""

    advanced: int
