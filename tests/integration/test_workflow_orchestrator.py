"""Integration tests for the workflow orchestrator against SQLite and in-memory fakes."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from flowspec.application.dtos.code_host import IssueComment
from flowspec.domain.exceptions import (
    ExternalServiceException,
    ResourceNotFoundException,
)
from flowspec.infrastructure.persistence.repositories import (
    SolutionRepository,
    SpecDocumentRepository,
    UploadRepository,
    WorkflowStepLogRepository,
)
from flowspec.infrastructure.services import (
    OrchestratorConfig,
    SpecWorkflowSteps,
    WorkflowOrchestrator,
)
from flowspec.infrastructure.services.step_event_log import StepEventLog
from flowspec.shared.utils.datetime import utc_now
from flowspec.shared.utils.ids import idempotency_key
from tests.conftest import FakeArchiveSource, FakeCodeHost, FakeNotifier, _PullRequest

PACKAGE_URL = "https://blob.example.com/packages/invoice-intake.zip"
REPO = "spec-invoice-intake"
FULL_NAME = f"acme/{REPO}"


async def _upload(
    session_factory,
    archive_source: FakeArchiveSource,
    package: bytes,
    *,
    name: str = "Invoice Intake",
    owner_email: str | None = "owner@example.com",
) -> str:
    archive_source.archives[PACKAGE_URL] = package
    async with session_factory() as session, session.begin():
        solution = await SolutionRepository(session).create_solution(
            name, owner_email=owner_email
        )
        upload = await UploadRepository(session).create_upload(solution.id, PACKAGE_URL)
        return upload.id


async def _start(orchestrator: WorkflowOrchestrator, upload_id: str):
    run = await orchestrator.start(upload_id)
    return await orchestrator.advance(run.id)


async def test_full_run_with_questions(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    notifier: FakeNotifier,
    sample_package: bytes,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    run = await _start(orchestrator, upload_id)

    assert run.status == "questions_open"
    assert run.current_step == "wait-for-ticket-close"
    assert run.awaiting_event == "ticket.closed"
    assert run.wait_deadline is not None
    assert run.wait_deadline > utc_now() + timedelta(days=29)
    issue = code_host.issue(REPO, run.awaiting_correlation_id)
    assert issue.labels == ["spec-questions"]
    assert "<!-- flowspec:" in issue.body
    assert "3 open question(s)" in issue.title
    assert code_host.hooks[REPO] == ["https://flowspec.example.com/api/v1/github/webhook"]
    _, question_request = notifier.sent[0]
    assert question_request["question_count"] == 3
    assert question_request["issue_url"].endswith(f"/issues/{issue.number}")

    issue.comments.append(IssueComment(author="analyst", body="Runs for AP invoices."))
    issue.comments.append(IssueComment(author="bot", body="   "))
    [run] = await orchestrator.handle_ticket_closed(issue.number, FULL_NAME.upper())

    assert run.status == "pr_open"
    assert run.awaiting_event == "request.merged"
    assert run.state["steps"]["collect-answers"]["answers"] == [
        {"author": "analyst", "body": "Runs for AP invoices.", "created_at": None}
    ]
    request = run.state["steps"]["create-request"]
    assert request["path"] == "specs/invoice-intake/spec-v1.md"
    assert request["branch"].startswith("spec/v1-")
    pull = code_host.pull(REPO, request["pr_number"])
    assert pull.base == "main"
    assert pull.title == "[Spec] Invoice Intake v1"
    committed = code_host.files[(REPO, request["branch"], request["path"])].content
    assert committed.startswith("# Business Flow Specification: Invoice Intake")
    # Answers go to the pull request, never into the document.
    assert "Runs for AP invoices." in pull.body
    assert "Runs for AP invoices." not in committed

    [run] = await orchestrator.handle_request_merged(
        pull.number, FULL_NAME, merged_by="reviewer", merge_commit_sha="c0ffee"
    )
    assert run.status == "completed"
    assert run.completed_steps[-1] == "notify-completion"
    assert notifier.names() == ["question_request", "approval_request", "completion"]

    async with session_factory() as session:
        upload = await UploadRepository(session).get_by_id(upload_id)
        assert upload.status == "completed"
        assert upload.github_issue_number == issue.number
        assert upload.github_pr_number == pull.number
        current = await SpecDocumentRepository(session).get_current(run.solution_id)
        assert current.version_number == 1
        assert current.approved_by == "reviewer"
        assert current.github_commit_sha == "c0ffee"
        assert current.markdown_content == committed
        events = [e.event_type for e in await WorkflowStepLogRepository(session).list_by_run(run.id)]
    assert "step.wait-for-ticket-close.succeeded" in events
    assert "step.wait-for-request-merge.succeeded" in events

    # A late duplicate delivery finds nothing to resume.
    assert await orchestrator.handle_request_merged(pull.number, FULL_NAME) == []


@pytest.mark.parametrize(
    "orchestrator_config",
    [OrchestratorConfig(question_ticket_enabled=False, max_retries=2, wait_timeout_days=30)],
)
async def test_approval_only_variant_skips_question_ticket(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    notifier: FakeNotifier,
    sample_package: bytes,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    run = await _start(orchestrator, upload_id)

    assert run.variant == "approval_only"
    assert run.status == "pr_open"
    assert code_host.count("create_issue") == 0
    assert "create-ticket" not in run.completed_steps
    assert notifier.names() == ["approval_request"]

    [run] = await orchestrator.handle_request_merged(run.awaiting_correlation_id, FULL_NAME)
    assert run.status == "completed"


async def test_run_without_questions_skips_ticket(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    make_package,
    make_flow,
) -> None:
    # A single control-flow action raises no questions.
    flow = make_flow(actions={"Compose": {"type": "Compose", "inputs": "x"}})
    upload_id = await _upload(session_factory, archive_source, make_package({"flow-1": flow}))
    run = await _start(orchestrator, upload_id)

    assert run.variant == "with_questions"
    assert run.status == "pr_open"
    assert run.state["steps"]["analyze"]["question_count"] == 0
    assert code_host.count("create_issue") == 0


async def test_pull_request_found_merged_on_replay_needs_no_wait(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    sample_package: bytes,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    run = await _start(orchestrator, upload_id)
    # The approval pull request for this run's branch was already merged.
    branch = f"spec/v1-{idempotency_key(run.id, 'create-request')[:8]}"
    code_host.pulls[REPO] = [
        _PullRequest(number=99, title="t", body="b", head=branch, base="main", merged=True)
    ]

    [run] = await orchestrator.handle_ticket_closed(run.awaiting_correlation_id, FULL_NAME)
    assert run.status == "completed"
    assert "wait-for-request-merge" not in run.state["waits"]
    assert code_host.count("create_pull_request") == 0
    assert run.state["steps"]["finalize"]["approved_by"] is None


async def test_replay_does_not_duplicate_external_resources(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    sample_package: bytes,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    # The issue is created, then the step's transaction fails before its
    # result is stored.
    original = UploadRepository.set_issue_number
    failures = [OperationalError("UPDATE upload", {}, Exception("database is locked"))]

    async def flaky_set_issue_number(self, upload_id: str, number: int) -> None:
        if failures:
            raise failures.pop()
        await original(self, upload_id, number)

    monkeypatch.setattr(UploadRepository, "set_issue_number", flaky_set_issue_number)
    run = await _start(orchestrator, upload_id)

    assert run.status == "questions_open"
    assert code_host.count("create_issue") == 1
    assert code_host.count("find_issue_by_marker") == 2
    assert len(code_host.issues[REPO]) == 1

    async with session_factory() as session:
        upload = await UploadRepository(session).get_by_id(upload_id)
    assert upload.github_issue_number == run.awaiting_correlation_id


async def test_step_retried_after_transient_failure(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    sample_package: bytes,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    code_host.fail_on["create_issue"] = [ExternalServiceException("github", "502", 502)]
    run = await _start(orchestrator, upload_id)

    assert run.status == "questions_open"
    # A step that succeeds resets the retry counter.
    assert run.attempts == 0
    assert run.error_message is None
    assert code_host.count("create_issue") == 2
    assert code_host.count("get_or_create_repository") == 1


async def test_retries_exhausted_fails_run(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    sample_package: bytes,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    code_host.fail_on["create_issue"] = [
        ExternalServiceException("github", "unavailable", 503) for _ in range(3)
    ]
    run = await _start(orchestrator, upload_id)

    assert run.status == "failed"
    assert run.attempts == 3
    assert run.error_message == "github: unavailable"
    assert code_host.count("create_issue") == 3

    async with session_factory() as session:
        upload = await UploadRepository(session).get_by_id(upload_id)
        assert upload.status == "failed"
        logs = await WorkflowStepLogRepository(session).list_by_run(run.id)
    failed = [e for e in logs if e.event_type == "step.create-ticket.failed"]
    assert len(failed) == 3
    assert failed[0].level == "error"
    assert logs[-1].event_type == "run.failed"

    # A failed run is terminal until someone retries it.
    assert (await orchestrator.advance(run.id)).status == "failed"
    run = await orchestrator.retry(run.id)
    assert run.status == "questions_open"


async def test_malformed_package_fails_without_retry(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    make_package,
) -> None:
    package = make_package(omit=("manifest.json",))
    upload_id = await _upload(session_factory, archive_source, package)
    run = await _start(orchestrator, upload_id)

    assert run.status == "failed"
    assert run.attempts == 1
    assert "manifest.json" in run.error_message
    assert archive_source.fetches == [PACKAGE_URL]


async def test_missing_code_host_is_configuration_error(
    session_factory,
    archive_source: FakeArchiveSource,
    notifier: FakeNotifier,
    sample_package: bytes,
) -> None:
    steps = SpecWorkflowSteps(archive_source=archive_source, notifier=notifier, code_host=None)
    orchestrator = WorkflowOrchestrator(session_factory, steps)
    upload_id = await _upload(session_factory, archive_source, sample_package)
    run = await _start(orchestrator, upload_id)

    assert run.status == "failed"
    assert run.attempts == 1
    assert "GITHUB_TOKEN" in run.error_message
    assert run.completed_steps == ("setup",)


async def test_expired_wait_fails_run(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    sample_package: bytes,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    run = await _start(orchestrator, upload_id)

    assert await orchestrator.expire_overdue_waits() == 0
    later = utc_now() + timedelta(days=31)
    assert await orchestrator.expire_overdue_waits(now=later) == 1
    run = await orchestrator.get_run(run.id)
    assert run.status == "failed"
    assert run.error_message == "Timed out waiting for ticket.closed"
    assert run.awaiting_event is None
    assert await orchestrator.expire_overdue_waits(now=later) == 0


async def test_start_is_idempotent_per_upload(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    sample_package: bytes,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    first = await orchestrator.start(upload_id)
    second = await orchestrator.start(upload_id)
    assert first.id == second.id
    assert first.status == "pending"
    with pytest.raises(ResourceNotFoundException):
        await orchestrator.start("missing")


async def test_second_upload_gets_next_version(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    sample_package: bytes,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    run = await _start(orchestrator, upload_id)
    [run] = await orchestrator.handle_ticket_closed(run.awaiting_correlation_id, FULL_NAME)
    [run] = await orchestrator.handle_request_merged(run.awaiting_correlation_id, FULL_NAME)
    solution_id = run.solution_id

    async with session_factory() as session, session.begin():
        second = await UploadRepository(session).create_upload(solution_id, PACKAGE_URL)
    run = await _start(orchestrator, second.id)
    [run] = await orchestrator.handle_ticket_closed(run.awaiting_correlation_id, FULL_NAME)
    assert run.state["steps"]["create-request"]["path"] == "specs/invoice-intake/spec-v2.md"
    [run] = await orchestrator.handle_request_merged(run.awaiting_correlation_id, FULL_NAME)

    async with session_factory() as session:
        documents = await SpecDocumentRepository(session).list_by_solution(solution_id)
    assert [(d.version_number, d.is_current) for d in documents] == [(2, True), (1, False)]
    assert "update" in documents[0].markdown_content
    assert code_host.count("get_or_create_repository") == 2


async def test_event_recorded_before_crash_is_redriven(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    sample_package: bytes,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    run = await _start(orchestrator, upload_id)
    issue_number = run.awaiting_correlation_id

    # The closed issue is recorded, then the process dies before the replay.
    assert await orchestrator.claim_ticket_closed(issue_number, FULL_NAME) == [run.id]
    run = await orchestrator.get_run(run.id)
    assert run.status == "questions_open"
    assert run.awaiting_event is None
    assert "wait-for-ticket-close" in run.state["waits"]
    assert run.needs_replay

    # A redelivery finds nothing left to claim.
    assert await orchestrator.handle_ticket_closed(issue_number, FULL_NAME) == []
    # Recently touched runs are left alone.
    assert await orchestrator.redrive_stalled() == 0

    later = utc_now() + timedelta(hours=1)
    assert await orchestrator.redrive_stalled(now=later) == 1
    run = await orchestrator.get_run(run.id)
    assert run.status == "pr_open"
    assert run.awaiting_event == "request.merged"
    assert not run.needs_replay
    assert code_host.count("create_issue") == 1
    assert code_host.count("create_pull_request") == 1
    assert await orchestrator.redrive_stalled(now=later) == 0


async def test_run_stopped_before_first_step_is_redriven(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    sample_package: bytes,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    run = await orchestrator.start(upload_id)
    assert run.status == "pending"

    assert await orchestrator.redrive_stalled(now=utc_now() + timedelta(hours=1)) == 1
    run = await orchestrator.get_run(run.id)
    assert run.status == "questions_open"

    async with session_factory() as session:
        events = [e.event_type for e in await WorkflowStepLogRepository(session).list_by_run(run.id)]
    assert "run.redriven" in events


async def test_completion_email_failure_is_retried(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    notifier: FakeNotifier,
    sample_package: bytes,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    notifier.fail_on["completion"] = [ExternalServiceException("resend", "down", 503)]
    run = await _start(orchestrator, upload_id)
    [run] = await orchestrator.handle_ticket_closed(run.awaiting_correlation_id, FULL_NAME)
    [run] = await orchestrator.handle_request_merged(run.awaiting_correlation_id, FULL_NAME)

    assert run.status == "completed"
    assert run.finished
    assert run.completed_at is not None
    assert run.state["steps"]["notify-completion"] == {"sent": True}
    assert notifier.names() == ["question_request", "approval_request", "completion"]


async def test_completion_email_failures_exhaust_retries(
    orchestrator: WorkflowOrchestrator,
    session_factory,
    archive_source: FakeArchiveSource,
    notifier: FakeNotifier,
    sample_package: bytes,
) -> None:
    upload_id = await _upload(session_factory, archive_source, sample_package)
    notifier.fail_on["completion"] = [
        ExternalServiceException("resend", "down", 503) for _ in range(3)
    ]
    run = await _start(orchestrator, upload_id)
    [run] = await orchestrator.handle_ticket_closed(run.awaiting_correlation_id, FULL_NAME)
    [run] = await orchestrator.handle_request_merged(run.awaiting_correlation_id, FULL_NAME)

    assert run.status == "failed"
    assert run.attempts == 3
    assert run.error_message == "resend: down"
    assert run.completed_at is None
    assert "notify-completion" not in run.completed_steps
    document_id = run.state["steps"]["finalize"]["document_id"]

    run = await orchestrator.retry(run.id)
    assert run.status == "completed"
    assert run.completed_at is not None
    assert run.state["steps"]["finalize"]["document_id"] == document_id
    assert notifier.names()[-1] == "completion"

    async with session_factory() as session:
        documents = await SpecDocumentRepository(session).list_by_solution(run.solution_id)
    assert [(d.version_number, d.is_current) for d in documents] == [(1, True)]


async def test_failing_step_log_does_not_fail_run(
    session_factory,
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    notifier: FakeNotifier,
    sample_package: bytes,
) -> None:
    def broken_session_factory():
        raise OperationalError("INSERT INTO workflow_step_log", {}, Exception("disk I/O error"))

    steps = SpecWorkflowSteps(archive_source=archive_source, notifier=notifier, code_host=code_host)
    orchestrator = WorkflowOrchestrator(
        session_factory, steps, event_log=StepEventLog(broken_session_factory)
    )
    upload_id = await _upload(session_factory, archive_source, sample_package)
    run = await _start(orchestrator, upload_id)

    assert run.status == "questions_open"
    assert run.error_message is None
    async with session_factory() as session:
        assert await WorkflowStepLogRepository(session).list_by_run(run.id) == []
