"""Shared enumerations for flowspec.

Cross-cutting enums used by domain, application and infrastructure
(workflow run lifecycle, question categories, flow node kinds).
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class WorkflowRunStatus(_ValuesMixin, str, Enum):
    """Workflow run lifecycle status (ordered as the run progresses)."""

    PENDING = "pending"
    ANALYZING = "analyzing"
    QUESTIONS_OPEN = "questions_open"
    DRAFTING = "drafting"
    PR_OPEN = "pr_open"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadStatus(_ValuesMixin, str, Enum):
    """Upload status; mirrors the status of the upload's workflow run."""

    PENDING = "pending"
    ANALYZING = "analyzing"
    QUESTIONS_OPEN = "questions_open"
    DRAFTING = "drafting"
    PR_OPEN = "pr_open"
    COMPLETED = "completed"
    FAILED = "failed"


class WorkflowVariant(_ValuesMixin, str, Enum):
    """Which review path a run follows. Fixed when the run is created."""

    WITH_QUESTIONS = "with_questions"
    APPROVAL_ONLY = "approval_only"


class WaitEvent(_ValuesMixin, str, Enum):
    """External events a suspended run can wait for."""

    TICKET_CLOSED = "ticket.closed"
    REQUEST_MERGED = "request.merged"


class QuestionCategory(_ValuesMixin, str, Enum):
    """Category of an open question raised by the analyzer."""

    TRIGGER = "trigger"
    ACTION = "action"
    CONNECTION = "connection"
    GENERAL = "general"


class NodeKind(_ValuesMixin, str, Enum):
    """Kind of a node in a flow's action tree."""

    ACTION = "action"
    CONDITION = "condition"
    LOOP = "loop"
    SCOPE = "scope"


class StepLogLevel(_ValuesMixin, str, Enum):
    """Level recorded on workflow step log rows."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"
