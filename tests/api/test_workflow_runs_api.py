"""Tests for the workflow runs API (status, retry, wait expiry, stalled-run sweep)."""

from datetime import timedelta

from httpx import AsyncClient
from sqlalchemy import update

from flowspec.domain.exceptions import ExternalServiceException
from flowspec.infrastructure.persistence.models import WorkflowRun
from flowspec.infrastructure.services import WorkflowOrchestrator
from flowspec.shared.utils.datetime import utc_now
from tests.conftest import FakeArchiveSource, FakeCodeHost

PACKAGE_URL = "https://blob.example.com/packages/invoice-intake.zip"


async def _start(client: AsyncClient) -> dict:
    solution = (await client.post("/api/v1/solutions", json={"name": "Invoice Intake"})).json()
    upload = (
        await client.post(
            f"/api/v1/solutions/{solution['id']}/uploads", json={"file_url": PACKAGE_URL}
        )
    ).json()
    return (await client.get(f"/api/v1/workflow-runs/{upload['workflow_run_id']}")).json()


async def test_unknown_run_returns_404(client: AsyncClient) -> None:
    assert (await client.get("/api/v1/workflow-runs/missing")).status_code == 404
    assert (await client.post("/api/v1/workflow-runs/missing/retry")).status_code == 404


async def test_run_detail_lists_step_events(
    client: AsyncClient, archive_source: FakeArchiveSource, sample_package: bytes
) -> None:
    archive_source.archives[PACKAGE_URL] = sample_package
    run = await _start(client)
    assert run["variant"] == "with_questions"
    assert run["completed_steps"] == [
        "setup",
        "analyze",
        "create-ticket",
        "notify-question-request",
    ]
    event_types = [e["event_type"] for e in run["events"]]
    assert event_types[0] == "run.started"
    assert "step.setup.succeeded" in event_types
    assert event_types[-1] == "step.wait-for-ticket-close.started"
    assert run["events"][-1]["metadata"]["event"] == "ticket.closed"


async def test_retry_requires_failed_run(
    client: AsyncClient, archive_source: FakeArchiveSource, sample_package: bytes
) -> None:
    archive_source.archives[PACKAGE_URL] = sample_package
    run = await _start(client)
    response = await client.post(f"/api/v1/workflow-runs/{run['id']}/retry")
    assert response.status_code == 409
    assert response.json()["error"] == "WORKFLOW_STATE_ERROR"


async def test_retry_resumes_failed_run(
    client: AsyncClient,
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    sample_package: bytes,
) -> None:
    archive_source.archives[PACKAGE_URL] = sample_package
    outage = [ExternalServiceException("github", "unavailable", 503) for _ in range(3)]
    code_host.fail_on["create_issue"] = outage
    run = await _start(client)
    assert run["status"] == "failed"
    assert run["attempts"] == 3
    assert "unavailable" in run["error_message"]

    response = await client.post(f"/api/v1/workflow-runs/{run['id']}/retry")
    assert response.status_code == 202
    assert response.json()["attempts"] == 0
    assert response.json()["status"] == "analyzing"

    run = (await client.get(f"/api/v1/workflow-runs/{run['id']}")).json()
    assert run["status"] == "questions_open"
    assert run["error_message"] is None
    assert code_host.count("get_or_create_repository") == 1
    assert "run.retried" in [e["event_type"] for e in run["events"]]


async def test_expire_waits(
    client: AsyncClient,
    session_factory,
    archive_source: FakeArchiveSource,
    sample_package: bytes,
) -> None:
    archive_source.archives[PACKAGE_URL] = sample_package
    run = await _start(client)
    assert (await client.post("/api/v1/workflow-runs/expire-waits")).json() == {"expired": 0}

    async with session_factory() as session, session.begin():
        await session.execute(
            update(WorkflowRun)
            .where(WorkflowRun.id == run["id"])
            .values(wait_deadline=utc_now() - timedelta(minutes=1))
        )

    response = await client.post("/api/v1/workflow-runs/expire-waits")
    assert response.json() == {"expired": 1}
    run = (await client.get(f"/api/v1/workflow-runs/{run['id']}")).json()
    assert run["status"] == "failed"
    assert run["awaiting_event"] is None
    assert run["error_message"] == "Timed out waiting for ticket.closed"


async def test_redrive_stalled(
    client: AsyncClient,
    session_factory,
    orchestrator: WorkflowOrchestrator,
    archive_source: FakeArchiveSource,
    sample_package: bytes,
) -> None:
    archive_source.archives[PACKAGE_URL] = sample_package
    run = await _start(client)
    # The closed issue was recorded, but the replay never ran.
    assert await orchestrator.claim_ticket_closed(run["awaiting_correlation_id"]) == [run["id"]]
    assert (await client.post("/api/v1/workflow-runs/redrive-stalled")).json() == {"advanced": 0}

    async with session_factory() as session, session.begin():
        await session.execute(
            update(WorkflowRun)
            .where(WorkflowRun.id == run["id"])
            .values(updated_at=utc_now() - timedelta(hours=1))
        )

    response = await client.post("/api/v1/workflow-runs/redrive-stalled")
    assert response.json() == {"advanced": 1}
    run = (await client.get(f"/api/v1/workflow-runs/{run['id']}")).json()
    assert run["status"] == "pr_open"
    assert run["awaiting_event"] == "request.merged"


async def test_start_trigger_redrives_unsuspended_run(
    client: AsyncClient,
    orchestrator: WorkflowOrchestrator,
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    sample_package: bytes,
) -> None:
    archive_source.archives[PACKAGE_URL] = sample_package
    run = await _start(client)
    await orchestrator.claim_ticket_closed(run["awaiting_correlation_id"])

    response = await client.post(f"/api/v1/uploads/{run['upload_id']}/workflow")
    assert response.status_code == 202
    assert response.json()["id"] == run["id"]
    run = (await client.get(f"/api/v1/workflow-runs/{run['id']}")).json()
    assert run["status"] == "pr_open"
    assert code_host.count("create_pull_request") == 1
