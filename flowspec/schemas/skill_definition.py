"""Skill definition API schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SkillDefinitionCreateRequest(BaseModel):
    """Request body for creating a skill definition.

    connector_id is optional at the schema level so a missing value is
    reported as a 400 validation error by the endpoint.
    """

    connector_id: str | None = Field(default=None, max_length=255)
    action_name: str | None = Field(default=None, max_length=255)
    business_meaning: str | None = None
    failure_impact: str | None = None
    notes: str | None = None


class SkillDefinitionUpdateRequest(BaseModel):
    """Request body for updating a skill definition (partial)."""

    connector_id: str | None = Field(default=None, max_length=255)
    action_name: str | None = Field(default=None, max_length=255)
    business_meaning: str | None = None
    failure_impact: str | None = None
    notes: str | None = None


class SkillDefinitionResponse(BaseModel):
    """Skill definition response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    connector_id: str
    action_name: str | None
    business_meaning: str | None
    failure_impact: str | None
    notes: str | None
    updated_at: datetime | None = None


class SeedResponse(BaseModel):
    """Result of seeding the built-in skill definitions."""

    model_config = ConfigDict(from_attributes=True)

    total: int
    inserted: int
