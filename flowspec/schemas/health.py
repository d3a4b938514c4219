"""Health check API schemas."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """GET /health: the process is up."""

    status: str = "ok"
    version: str | None = None


class IntegrationStatus(BaseModel):
    """Which external collaborators the workflow can reach with the current settings.

    None of these gate readiness: runs without a code host fail at analyze
    with CONFIGURATION_MISSING, and email falls back to the log sender.
    """

    code_host: bool = Field(description="GITHUB_TOKEN and GITHUB_OWNER are set")
    webhook: bool = Field(description="GITHUB_WEBHOOK_SECRET is set")
    email_delivery: Literal["resend", "log"]


class ReadinessResponse(BaseModel):
    """GET /health/ready when the database answers."""

    status: str = "ok"
    integrations: IntegrationStatus


class ReadinessErrorResponse(BaseModel):
    """GET /health/ready when the database is unreachable (503)."""

    status: str = "not_ready"
    message: str
