"""Persistence repositories. Re-exports for dependency injection."""

from flowspec.infrastructure.persistence.repositories.base import BaseRepository
from flowspec.infrastructure.persistence.repositories.skill_definition_repo import (
    SkillDefinitionRepository,
)
from flowspec.infrastructure.persistence.repositories.solution_repo import (
    SolutionRepository,
    UploadRepository,
)
from flowspec.infrastructure.persistence.repositories.spec_document_repo import (
    SpecDocumentRepository,
)
from flowspec.infrastructure.persistence.repositories.workflow_run_repo import (
    WorkflowRunRepository,
    WorkflowStepLogRepository,
)

__all__ = [
    "BaseRepository",
    "SkillDefinitionRepository",
    "SolutionRepository",
    "SpecDocumentRepository",
    "UploadRepository",
    "WorkflowRunRepository",
    "WorkflowStepLogRepository",
]
