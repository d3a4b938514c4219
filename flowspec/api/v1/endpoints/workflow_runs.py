"""Workflow runs API: status, manual retry, wait expiry and stalled-run sweep."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from flowspec.api.v1.dependencies import get_orchestrator, get_step_log_repo
from flowspec.core.limiter import limit_writes
from flowspec.infrastructure.persistence.repositories import WorkflowStepLogRepository
from flowspec.infrastructure.services import WorkflowOrchestrator
from flowspec.schemas.workflow_run import (
    ExpireWaitsResponse,
    RedriveStalledResponse,
    WorkflowRunDetailResponse,
    WorkflowRunResponse,
    WorkflowStepLogResponse,
)

router = APIRouter()


@router.post("/expire-waits", response_model=ExpireWaitsResponse)
@limit_writes
async def expire_waits(
    request: Request,
    orchestrator: Annotated[WorkflowOrchestrator, Depends(get_orchestrator)],
):
    """Fail suspended runs whose wait deadline has passed (cron entry point)."""
    return ExpireWaitsResponse(expired=await orchestrator.expire_overdue_waits())


@router.post("/redrive-stalled", response_model=RedriveStalledResponse)
@limit_writes
async def redrive_stalled(
    request: Request,
    orchestrator: Annotated[WorkflowOrchestrator, Depends(get_orchestrator)],
):
    """Advance runs that stopped between steps (cron entry point)."""
    return RedriveStalledResponse(advanced=await orchestrator.redrive_stalled())


@router.get("/{run_id}", response_model=WorkflowRunDetailResponse)
async def get_workflow_run(
    run_id: str,
    orchestrator: Annotated[WorkflowOrchestrator, Depends(get_orchestrator)],
    log_repo: WorkflowStepLogRepository = Depends(get_step_log_repo),
):
    """Get a workflow run with its step event log."""
    run = await orchestrator.get_run(run_id)
    events = await log_repo.list_by_run(run_id)
    return WorkflowRunDetailResponse(
        **WorkflowRunResponse.model_validate(run).model_dump(),
        events=[WorkflowStepLogResponse.model_validate(e) for e in events],
    )


@router.post("/{run_id}/retry", response_model=WorkflowRunResponse, status_code=202)
@limit_writes
async def retry_workflow_run(
    request: Request,
    run_id: str,
    background_tasks: BackgroundTasks,
    orchestrator: Annotated[WorkflowOrchestrator, Depends(get_orchestrator)],
):
    """Retry a failed run; completed steps are not executed again."""
    run = await orchestrator.reset_for_retry(run_id)
    background_tasks.add_task(orchestrator.advance, run_id)
    return WorkflowRunResponse.model_validate(run)
