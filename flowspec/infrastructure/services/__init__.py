"""Infrastructure services: the spec review workflow and its step log."""

from flowspec.infrastructure.services.spec_workflow_steps import (
    SpecWorkflowSteps,
    WorkflowStepConfig,
)
from flowspec.infrastructure.services.step_event_log import StepEventLog
from flowspec.infrastructure.services.workflow_orchestrator import (
    OrchestratorConfig,
    WorkflowOrchestrator,
)

__all__ = [
    "OrchestratorConfig",
    "SpecWorkflowSteps",
    "StepEventLog",
    "WorkflowOrchestrator",
    "WorkflowStepConfig",
]
