"""Application DTOs (no ORM dependency)."""

from flowspec.application.dtos.analysis import (
    ActionInfo,
    ConnectorInfo,
    FlowAnalysisResult,
    Question,
    SkillMatch,
    TriggerInfo,
    count_questions,
)
from flowspec.application.dtos.skill_definition import (
    SeedResult,
    SkillDefinitionCreate,
    SkillDefinitionRecord,
    build_connector_key,
)
from flowspec.application.dtos.workflow import SpecMetadata, WorkflowRunResult

__all__ = [
    "ActionInfo",
    "ConnectorInfo",
    "FlowAnalysisResult",
    "Question",
    "SeedResult",
    "SkillDefinitionCreate",
    "SkillDefinitionRecord",
    "SkillMatch",
    "SpecMetadata",
    "TriggerInfo",
    "WorkflowRunResult",
    "build_connector_key",
    "count_questions",
]
