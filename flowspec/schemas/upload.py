"""Upload API schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UploadCreateRequest(BaseModel):
    """Request body for registering an uploaded package archive."""

    file_url: str = Field(
        ...,
        min_length=1,
        max_length=2048,
        pattern=r"^(https?|file)://",
        description="Where the archive can be downloaded (blob storage URL)",
    )
    start_workflow: bool = Field(default=True, description="Start the review workflow now")


class UploadResponse(BaseModel):
    """Upload response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    solution_id: str
    file_url: str
    status: str
    github_issue_number: int | None
    github_pr_number: int | None
    created_at: datetime | None = None
    workflow_run_id: str | None = None
