"""Solution API schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SolutionCreateRequest(BaseModel):
    """Request body for creating a solution."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    owner_email: str | None = Field(default=None, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    github_repo_name: str | None = Field(
        default=None,
        min_length=1,
        max_length=100,
        pattern=r"^[A-Za-z0-9._-]+$",
        description="Fixed spec repository name; derived from the name when omitted",
    )


class SolutionResponse(BaseModel):
    """Solution response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None
    owner_email: str | None
    github_repo_name: str | None
    spec_version_counter: int
    created_at: datetime | None = None
