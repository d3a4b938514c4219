"""Skill definitions API: the connector knowledge base."""

from fastapi import APIRouter, Depends, Request

from flowspec.api.v1.dependencies import (
    get_skill_definition_repo,
    get_skill_definition_repo_for_write,
)
from flowspec.application.dtos.skill_definition import SkillDefinitionCreate
from flowspec.application.use_cases.skills import seed_skill_definitions
from flowspec.core.limiter import limit_writes
from flowspec.domain.exceptions import ValidationException
from flowspec.infrastructure.persistence.repositories import SkillDefinitionRepository
from flowspec.schemas.skill_definition import (
    SeedResponse,
    SkillDefinitionCreateRequest,
    SkillDefinitionResponse,
    SkillDefinitionUpdateRequest,
)

router = APIRouter()


def _clean(value: str | None) -> str | None:
    """Trim; blank becomes None."""
    if value is None:
        return None
    return value.strip() or None


@router.get("", response_model=list[SkillDefinitionResponse])
async def list_skill_definitions(
    repo: SkillDefinitionRepository = Depends(get_skill_definition_repo),
):
    """List all skill definitions ordered by connector key."""
    return [SkillDefinitionResponse.model_validate(r) for r in await repo.list_all()]


@router.post("", response_model=SkillDefinitionResponse, status_code=201)
@limit_writes
async def create_skill_definition(
    request: Request,
    body: SkillDefinitionCreateRequest,
    repo: SkillDefinitionRepository = Depends(get_skill_definition_repo_for_write),
):
    """Create a skill definition. 400 without connector_id, 409 on duplicate key."""
    connector_id = _clean(body.connector_id)
    if not connector_id:
        raise ValidationException("connector_id is required", field="connector_id")
    record = await repo.create_skill(
        SkillDefinitionCreate(
            connector_id=connector_id,
            action_name=_clean(body.action_name),
            business_meaning=_clean(body.business_meaning),
            failure_impact=_clean(body.failure_impact),
            notes=_clean(body.notes),
        )
    )
    return SkillDefinitionResponse.model_validate(record)


@router.put("/{skill_id}", response_model=SkillDefinitionResponse)
@limit_writes
async def update_skill_definition(
    request: Request,
    skill_id: str,
    body: SkillDefinitionUpdateRequest,
    repo: SkillDefinitionRepository = Depends(get_skill_definition_repo_for_write),
):
    """Update the fields present in the body. 404 when the id is unknown."""
    changes = {
        field: _clean(value) for field, value in body.model_dump(exclude_unset=True).items()
    }
    if "connector_id" in changes and not changes["connector_id"]:
        raise ValidationException("connector_id cannot be empty", field="connector_id")
    record = await repo.update_skill(skill_id, changes)
    return SkillDefinitionResponse.model_validate(record)


@router.post("/seed", response_model=SeedResponse)
@limit_writes
async def seed_skills(
    request: Request,
    repo: SkillDefinitionRepository = Depends(get_skill_definition_repo_for_write),
):
    """Insert the built-in skill definitions that are not present yet."""
    return SeedResponse.model_validate(await seed_skill_definitions(repo))
