"""Spec document API schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SpecDocumentSummaryResponse(BaseModel):
    """Spec document version without its content."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    solution_id: str
    upload_id: str | None
    workflow_run_id: str | None
    version_number: int
    is_current: bool
    change_reason: str | None
    github_commit_sha: str | None
    github_pr_number: int | None
    approved_at: datetime | None
    approved_by: str | None
    created_at: datetime | None = None


class SpecDocumentResponse(SpecDocumentSummaryResponse):
    """Spec document version with its markdown content."""

    markdown_content: str
