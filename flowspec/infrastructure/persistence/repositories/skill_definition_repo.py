"""SkillDefinition repository (knowledge base)."""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from flowspec.application.dtos.skill_definition import (
    SkillDefinitionCreate,
    SkillDefinitionRecord,
)
from flowspec.domain.exceptions import (
    ResourceNotFoundException,
    SkillDefinitionConflictException,
)
from flowspec.infrastructure.persistence.models import SkillDefinition
from flowspec.infrastructure.persistence.repositories.base import BaseRepository


def to_record(obj: SkillDefinition) -> SkillDefinitionRecord:
    return SkillDefinitionRecord(
        id=obj.id,
        connector_id=obj.connector_id,
        action_name=obj.action_name,
        business_meaning=obj.business_meaning,
        failure_impact=obj.failure_impact,
        notes=obj.notes,
        updated_at=obj.updated_at,
    )


class SkillDefinitionRepository(BaseRepository[SkillDefinition]):
    """Skill definition repository. Implements ISkillDefinitionRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, SkillDefinition)

    async def list_all(self) -> list[SkillDefinitionRecord]:
        result = await self.db.execute(
            select(SkillDefinition).order_by(SkillDefinition.connector_id)
        )
        return [to_record(obj) for obj in result.scalars().all()]

    async def get_by_connector_key(self, connector_id: str) -> SkillDefinitionRecord | None:
        result = await self.db.execute(
            select(SkillDefinition).where(SkillDefinition.connector_id == connector_id)
        )
        obj = result.scalar_one_or_none()
        return to_record(obj) if obj else None

    async def create_skill(self, data: SkillDefinitionCreate) -> SkillDefinitionRecord:
        """Insert a record; the connector key must not exist yet."""
        if await self.get_by_connector_key(data.connector_id) is not None:
            raise SkillDefinitionConflictException(data.connector_id)
        obj = SkillDefinition(
            connector_id=data.connector_id,
            action_name=data.action_name,
            business_meaning=data.business_meaning,
            failure_impact=data.failure_impact,
            notes=data.notes,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(obj)
                await self.db.flush()
        except IntegrityError as e:
            raise SkillDefinitionConflictException(data.connector_id) from e
        await self.db.refresh(obj)
        return to_record(obj)

    async def update_skill(
        self, skill_id: str, changes: dict[str, str | None]
    ) -> SkillDefinitionRecord:
        """Apply changes (field -> value) to the record; raises ResourceNotFoundException."""
        obj = await self.get_by_id(skill_id)
        if obj is None:
            raise ResourceNotFoundException("SkillDefinition", skill_id)
        new_key = changes.get("connector_id")
        if new_key and new_key != obj.connector_id:
            if await self.get_by_connector_key(new_key) is not None:
                raise SkillDefinitionConflictException(new_key)
        for field, value in changes.items():
            setattr(obj, field, value)
        return to_record(await self.update(obj))
