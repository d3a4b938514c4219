"""Solutions API: solutions, their spec versions and package uploads."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from flowspec.api.v1.dependencies import (
    get_orchestrator,
    get_solution_repo,
    get_solution_repo_for_write,
    get_spec_document_repo,
)
from flowspec.core.limiter import limit_writes
from flowspec.domain.exceptions import ResourceNotFoundException
from flowspec.infrastructure.persistence.database import get_db
from flowspec.infrastructure.persistence.repositories import (
    SolutionRepository,
    SpecDocumentRepository,
    UploadRepository,
)
from flowspec.infrastructure.services import WorkflowOrchestrator
from flowspec.schemas.solution import SolutionCreateRequest, SolutionResponse
from flowspec.schemas.spec_document import (
    SpecDocumentResponse,
    SpecDocumentSummaryResponse,
)
from flowspec.schemas.upload import UploadCreateRequest, UploadResponse

router = APIRouter()


@router.post("", response_model=SolutionResponse, status_code=201)
@limit_writes
async def create_solution(
    request: Request,
    body: SolutionCreateRequest,
    solution_repo: SolutionRepository = Depends(get_solution_repo_for_write),
):
    """Create a solution."""
    solution = await solution_repo.create_solution(
        body.name.strip(),
        description=body.description,
        owner_email=body.owner_email,
        github_repo_name=body.github_repo_name,
    )
    return SolutionResponse.model_validate(solution)


@router.get("/{solution_id}", response_model=SolutionResponse)
async def get_solution(
    solution_id: str,
    solution_repo: SolutionRepository = Depends(get_solution_repo),
):
    """Get solution by id."""
    solution = await solution_repo.get_by_id(solution_id)
    if not solution:
        raise ResourceNotFoundException("Solution", solution_id)
    return SolutionResponse.model_validate(solution)


@router.get("/{solution_id}/specs", response_model=list[SpecDocumentSummaryResponse])
async def list_spec_versions(
    solution_id: str,
    solution_repo: SolutionRepository = Depends(get_solution_repo),
    document_repo: SpecDocumentRepository = Depends(get_spec_document_repo),
):
    """List every spec document version of a solution, newest first."""
    if not await solution_repo.get_by_id(solution_id):
        raise ResourceNotFoundException("Solution", solution_id)
    documents = await document_repo.list_by_solution(solution_id)
    return [SpecDocumentSummaryResponse.model_validate(d) for d in documents]


@router.get("/{solution_id}/specs/current", response_model=SpecDocumentResponse)
async def get_current_spec(
    solution_id: str,
    document_repo: SpecDocumentRepository = Depends(get_spec_document_repo),
):
    """Get the approved, current spec document of a solution."""
    document = await document_repo.get_current(solution_id)
    if not document:
        raise ResourceNotFoundException("CurrentSpecDocument", solution_id)
    return SpecDocumentResponse.model_validate(document)


@router.post("/{solution_id}/uploads", response_model=UploadResponse, status_code=201)
@limit_writes
async def create_upload(
    request: Request,
    solution_id: str,
    body: UploadCreateRequest,
    background_tasks: BackgroundTasks,
    db: Annotated[AsyncSession, Depends(get_db)],
    orchestrator: Annotated[WorkflowOrchestrator, Depends(get_orchestrator)],
):
    """Register an uploaded package and start its review workflow."""
    if not await SolutionRepository(db).get_by_id(solution_id):
        raise ResourceNotFoundException("Solution", solution_id)
    upload = await UploadRepository(db).create_upload(solution_id, body.file_url)
    # The orchestrator reads the upload in its own session.
    await db.commit()
    response = UploadResponse.model_validate(upload)
    if not body.start_workflow:
        return response
    run = await orchestrator.start(upload.id)
    # Also re-drives a run that stopped between steps.
    if run.needs_replay:
        background_tasks.add_task(orchestrator.advance, run.id)
    return response.model_copy(update={"workflow_run_id": run.id})
