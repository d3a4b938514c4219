"""Persistence models: ORM entities and mixins."""

from flowspec.infrastructure.persistence.models.mixins import CuidMixin, TimestampMixin
from flowspec.infrastructure.persistence.models.skill_definition import SkillDefinition
from flowspec.infrastructure.persistence.models.solution import Solution, Upload
from flowspec.infrastructure.persistence.models.spec_document import SpecDocument
from flowspec.infrastructure.persistence.models.workflow_run import (
    WorkflowRun,
    WorkflowStepLog,
)

__all__ = [
    "CuidMixin",
    "SkillDefinition",
    "Solution",
    "SpecDocument",
    "TimestampMixin",
    "Upload",
    "WorkflowRun",
    "WorkflowStepLog",
]
