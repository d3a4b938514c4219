"""Presentation-layer dependency injection (composition root).

Provides FastAPI Depends() for DB sessions, repositories and the workflow
orchestrator. Routes depend only on these, never on infrastructure
construction directly.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from flowspec.infrastructure.persistence.database import get_db, get_db_transactional
from flowspec.infrastructure.persistence.repositories import (
    SkillDefinitionRepository,
    SolutionRepository,
    SpecDocumentRepository,
    UploadRepository,
    WorkflowStepLogRepository,
)
from flowspec.infrastructure.services import WorkflowOrchestrator


def get_orchestrator(request: Request) -> WorkflowOrchestrator:
    """Workflow orchestrator built in the lifespan (app.state.orchestrator)."""
    return request.app.state.orchestrator


async def get_solution_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SolutionRepository:
    return SolutionRepository(db)


async def get_solution_repo_for_write(
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
) -> SolutionRepository:
    return SolutionRepository(db)


async def get_upload_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> UploadRepository:
    return UploadRepository(db)


async def get_spec_document_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SpecDocumentRepository:
    return SpecDocumentRepository(db)


async def get_step_log_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WorkflowStepLogRepository:
    return WorkflowStepLogRepository(db)


async def get_skill_definition_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SkillDefinitionRepository:
    """Skill definition repository for reads."""
    return SkillDefinitionRepository(db)


async def get_skill_definition_repo_for_write(
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
) -> SkillDefinitionRepository:
    """Skill definition repository for create/update/seed (transactional)."""
    return SkillDefinitionRepository(db)
