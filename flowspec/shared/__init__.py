"""Shared utilities: enums, telemetry, and cross-cutting helpers.

Used by domain, application, and infrastructure. No business logic.
"""

from flowspec.shared.enums import (
    NodeKind,
    QuestionCategory,
    UploadStatus,
    WaitEvent,
    WorkflowRunStatus,
    WorkflowVariant,
)
from flowspec.shared.utils import ensure_utc, generate_cuid, idempotency_key, utc_now

__all__ = [
    "NodeKind",
    "QuestionCategory",
    "UploadStatus",
    "WaitEvent",
    "WorkflowRunStatus",
    "WorkflowVariant",
    "ensure_utc",
    "generate_cuid",
    "idempotency_key",
    "utc_now",
]
