"""DTOs for skill definitions (knowledge-base records)."""

from dataclasses import dataclass
from datetime import datetime

COMPOSITE_KEY_SEPARATOR = "/"


def build_connector_key(connector_id: str, action_name: str | None) -> str:
    """Return the stored connector key: bare connector id, or 'connector/action' when scoped."""
    if action_name:
        return f"{connector_id}{COMPOSITE_KEY_SEPARATOR}{action_name}"
    return connector_id


@dataclass(frozen=True)
class SkillDefinitionRecord:
    """Skill definition read-model consumed by the analyzer."""

    id: str
    connector_id: str
    action_name: str | None
    business_meaning: str | None
    failure_impact: str | None
    notes: str | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class SkillDefinitionCreate:
    """Input for creating or seeding a skill definition."""

    connector_id: str
    action_name: str | None = None
    business_meaning: str | None = None
    failure_impact: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class SeedResult:
    """Outcome of seeding the built-in skill definitions."""

    total: int
    inserted: int
