"""Domain exceptions for flowspec.

Defines domain-level exceptions independent of infrastructure concerns.
The orchestrator uses the retryable flag to decide whether a failed step
may be replayed; the presentation layer maps error codes to HTTP responses
in exception handlers.
"""

from typing import Any


class FlowSpecException(Exception):
    """Base exception for all flowspec errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. entry, resource_id).
        retryable: Whether a workflow step failing with this error may be retried.
    """

    retryable: bool = True

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(FlowSpecException):
    """Raised when input validation fails (e.g. invalid format or range)."""

    retryable = False

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class ResourceNotFoundException(FlowSpecException):
    """Raised when a requested resource does not exist."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class MalformedPackageException(FlowSpecException):
    """Raised when an uploaded archive is structurally invalid.

    Never retried: the same bytes will fail the same way.
    """

    retryable = False

    def __init__(self, entry: str, reason: str) -> None:
        super().__init__(
            f"Malformed package: {entry}: {reason}",
            "MALFORMED_PACKAGE",
            {"entry": entry, "reason": reason},
        )
        self.entry = entry
        self.reason = reason


class ExternalServiceException(FlowSpecException):
    """Raised when a call to GitHub, the email provider or the archive host fails."""

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        details: dict[str, Any] = {"service": service}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(f"{service}: {message}", "EXTERNAL_SERVICE_ERROR", details)
        self.service = service
        self.status_code = status_code


class ConfigurationMissingException(FlowSpecException):
    """Raised when a required credential or identity is not configured. Never retried."""

    retryable = False

    def __init__(self, setting: str) -> None:
        super().__init__(
            f"Required setting {setting} is not configured",
            "CONFIGURATION_MISSING",
            {"setting": setting},
        )
        self.setting = setting


class SignatureInvalidException(FlowSpecException):
    """Raised when a webhook request has a missing or wrong HMAC signature."""

    retryable = False

    def __init__(self, message: str = "Invalid or missing webhook signature") -> None:
        super().__init__(message, "SIGNATURE_INVALID")


class SkillDefinitionConflictException(FlowSpecException):
    """Raised when a skill definition with the same connector key already exists."""

    def __init__(self, connector_id: str) -> None:
        super().__init__(
            f"Skill definition for '{connector_id}' already exists",
            "SKILL_DEFINITION_CONFLICT",
            {"connector_id": connector_id},
        )


class WorkflowStateException(FlowSpecException):
    """Raised when a workflow run is asked to do something its status does not allow."""

    retryable = False

    def __init__(self, run_id: str, status: str, message: str) -> None:
        super().__init__(
            message,
            "WORKFLOW_STATE_ERROR",
            {"run_id": run_id, "status": status},
        )


class WaitTimeoutException(FlowSpecException):
    """Raised (and recorded) when a suspended run's wait deadline passes."""

    retryable = False

    def __init__(self, run_id: str, event: str) -> None:
        super().__init__(
            f"Timed out waiting for {event}",
            "WAIT_TIMEOUT",
            {"run_id": run_id, "event": event},
        )
