"""Uploads API: upload status and the workflow start trigger."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from flowspec.api.v1.dependencies import get_orchestrator, get_upload_repo
from flowspec.core.limiter import limit_writes
from flowspec.domain.exceptions import ResourceNotFoundException
from flowspec.infrastructure.persistence.repositories import UploadRepository
from flowspec.infrastructure.services import WorkflowOrchestrator
from flowspec.schemas.upload import UploadResponse
from flowspec.schemas.workflow_run import WorkflowRunResponse

router = APIRouter()


@router.get("/{upload_id}", response_model=UploadResponse)
async def get_upload(
    upload_id: str,
    upload_repo: UploadRepository = Depends(get_upload_repo),
):
    """Get upload by id."""
    upload = await upload_repo.get_by_id(upload_id)
    if not upload:
        raise ResourceNotFoundException("Upload", upload_id)
    return UploadResponse.model_validate(upload)


@router.post("/{upload_id}/workflow", response_model=WorkflowRunResponse, status_code=202)
@limit_writes
async def start_workflow(
    request: Request,
    upload_id: str,
    background_tasks: BackgroundTasks,
    orchestrator: Annotated[WorkflowOrchestrator, Depends(get_orchestrator)],
):
    """Start the review workflow for an upload (returns the existing run if any)."""
    run = await orchestrator.start(upload_id)
    # Also re-drives a run that stopped between steps.
    if run.needs_replay:
        background_tasks.add_task(orchestrator.advance, run.id)
    return WorkflowRunResponse.model_validate(run)
