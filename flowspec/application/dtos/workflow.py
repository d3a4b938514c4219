"""DTOs for spec rendering and workflow runs."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class SpecMetadata:
    """Document-level values the renderer does not derive from the analysis.

    created_at is supplied by the caller so rendering never reads the clock.
    """

    solution_name: str
    package_name: str
    version_number: int
    created_at: datetime | str | None = None
    package_created_at: str | None = None
    change_reason: str | None = None


@dataclass(frozen=True)
class WorkflowRunResult:
    """Workflow run read-model returned by the orchestrator."""

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
    completed_steps: tuple[str, ...] = ()
    state: dict[str, Any] | None = None
    completed_at: datetime | None = None

    @property
    def finished(self) -> bool:
        """Failed, or every step done (status alone turns completed one step early)."""
        return self.status == "failed" or self.completed_at is not None

    @property
    def needs_replay(self) -> bool:
        """Not finished and not suspended: only an advance() can move this run on."""
        return not self.finished and self.awaiting_event is None
