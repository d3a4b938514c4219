"""Repository interfaces (ports) for the application layer."""

from __future__ import annotations

from typing import Protocol

from flowspec.application.dtos.skill_definition import (
    SkillDefinitionCreate,
    SkillDefinitionRecord,
)


class ISkillDefinitionRepository(Protocol):
    """Protocol for the skill definition knowledge base."""

    async def list_all(self) -> list[SkillDefinitionRecord]:
        """Return every skill definition, ordered by connector key."""
        ...

    async def get_by_connector_key(self, connector_id: str) -> SkillDefinitionRecord | None:
        """Return the record stored under connector_id (bare or composite key)."""
        ...

    async def create_skill(self, data: SkillDefinitionCreate) -> SkillDefinitionRecord:
        """Insert a record; raise SkillDefinitionConflictException on duplicate key."""
        ...
