"""Tests for domain exceptions (error_code, details, retryable flag)."""

from flowspec.domain.exceptions import (
    ConfigurationMissingException,
    ExternalServiceException,
    FlowSpecException,
    MalformedPackageException,
    ResourceNotFoundException,
    SignatureInvalidException,
    SkillDefinitionConflictException,
    ValidationException,
    WaitTimeoutException,
    WorkflowStateException,
)


def test_base_exception_defaults() -> None:
    """FlowSpecException uses the class name as error_code and is retryable."""
    exc = FlowSpecException("Something failed")
    assert exc.error_code == "FlowSpecException"
    assert exc.details == {}
    assert exc.retryable is True
    assert exc.to_dict() == {
        "error": "FlowSpecException",
        "message": "Something failed",
        "details": {},
    }


def test_resource_not_found() -> None:
    exc = ResourceNotFoundException("Upload", "u1")
    assert exc.message == "Upload 'u1' not found"
    assert exc.error_code == "RESOURCE_NOT_FOUND"
    assert exc.details == {"resource_type": "Upload", "resource_id": "u1"}


def test_validation_exception_field() -> None:
    assert ValidationException("bad", field="connector_id").details == {"field": "connector_id"}
    assert ValidationException("bad").details == {}


def test_external_service_is_retryable() -> None:
    """Host and notifier failures are retried up to the retry limit."""
    exc = ExternalServiceException("github", "boom", status_code=502)
    assert exc.retryable is True
    assert exc.message == "github: boom"
    assert exc.details == {"service": "github", "status_code": 502}


def test_fatal_exceptions_are_not_retryable() -> None:
    for exc in (
        MalformedPackageException("manifest.json", "missing"),
        ValidationException("too large", field="file_url"),
        ConfigurationMissingException("GITHUB_TOKEN"),
        SignatureInvalidException(),
        WorkflowStateException("r1", "completed", "no"),
        WaitTimeoutException("r1", "ticket.closed"),
    ):
        assert exc.retryable is False, type(exc).__name__


def test_error_codes() -> None:
    assert MalformedPackageException("e", "r").error_code == "MALFORMED_PACKAGE"
    assert ConfigurationMissingException("X").error_code == "CONFIGURATION_MISSING"
    assert SignatureInvalidException().error_code == "SIGNATURE_INVALID"
    assert SkillDefinitionConflictException("c").error_code == "SKILL_DEFINITION_CONFLICT"
    assert WorkflowStateException("r", "s", "m").error_code == "WORKFLOW_STATE_ERROR"
    assert WaitTimeoutException("r", "e").error_code == "WAIT_TIMEOUT"
