"""Durable orchestrator for the spec review workflow.

A run is replayed from the top on every advance(). Steps whose result is
already memoized in run.state["steps"] are skipped; a wait step whose event
has not been recorded in run.state["waits"] persists what it is waiting for
and suspends the run. Nothing is held in memory between calls, so a run
survives restarts and may stay suspended for months. A run that stopped
between steps (process death, lost background task) is picked up again by
redrive_stalled().

Session discipline: each step runs in its own transaction, and step log
rows are written in separate, non-overlapping sessions.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from flowspec.application.dtos.workflow import WorkflowRunResult
from flowspec.core.config import Settings
from flowspec.domain.exceptions import (
    FlowSpecException,
    ResourceNotFoundException,
    WaitTimeoutException,
    WorkflowStateException,
)
from flowspec.infrastructure.persistence.models import WorkflowRun
from flowspec.infrastructure.persistence.repositories import (
    UploadRepository,
    WorkflowRunRepository,
)
from flowspec.infrastructure.services.spec_workflow_steps import (
    ANALYZE,
    COLLECT_ANSWERS,
    CREATE_REQUEST,
    CREATE_TICKET,
    FINALIZE,
    GENERATE_SPEC,
    NOTIFY_APPROVAL_REQUEST,
    NOTIFY_COMPLETION,
    NOTIFY_QUESTION_REQUEST,
    SETUP,
    STEP_STATUS,
    WAIT_FOR_REQUEST_MERGE,
    WAIT_FOR_TICKET_CLOSE,
    SpecWorkflowSteps,
    StepContext,
    status_after,
)
from flowspec.infrastructure.services.step_event_log import StepEventLog
from flowspec.shared.enums import (
    UploadStatus,
    WaitEvent,
    WorkflowRunStatus,
    WorkflowVariant,
)
from flowspec.shared.telemetry.logging import get_logger
from flowspec.shared.telemetry.tracing import add_span_attributes, traced
from flowspec.shared.utils.datetime import ensure_utc, utc_now
from flowspec.shared.utils.ids import idempotency_key

logger = get_logger(__name__)

StepHandler = Callable[[StepContext], Awaitable[dict[str, Any]]]

_MAX_ERROR_CHARS = 2000


class _Suspended(Exception):
    """Internal: the run is now waiting for an external event."""

    def __init__(self, step: str) -> None:
        super().__init__(step)
        self.step = step


@dataclass(frozen=True)
class OrchestratorConfig:
    question_ticket_enabled: bool = True
    max_retries: int = 2
    wait_timeout_days: int = 365
    stall_after_minutes: int = 15

    @classmethod
    def from_settings(cls, settings: Settings) -> OrchestratorConfig:
        return cls(
            question_ticket_enabled=settings.workflow_question_ticket_enabled,
            max_retries=settings.workflow_max_retries,
            wait_timeout_days=settings.workflow_wait_timeout_days,
            stall_after_minutes=settings.workflow_stall_after_minutes,
        )


def _error_message(exc: BaseException) -> str:
    if isinstance(exc, FlowSpecException):
        message = exc.message
    else:
        message = f"{type(exc).__name__}: {exc}"
    return message[:_MAX_ERROR_CHARS]


def to_result(run: WorkflowRun) -> WorkflowRunResult:
    state = run.state or {}
    steps = state.get("steps") or {}
    return WorkflowRunResult(
        id=run.id,
        upload_id=run.upload_id,
        solution_id=run.solution_id,
        variant=run.variant,
        status=run.status,
        current_step=run.current_step,
        attempts=run.attempts,
        awaiting_event=run.awaiting_event,
        awaiting_correlation_id=run.awaiting_correlation_id,
        wait_deadline=ensure_utc(run.wait_deadline),
        error_message=run.error_message,
        completed_steps=tuple(steps),
        state=state,
        completed_at=ensure_utc(run.completed_at),
    )


class WorkflowOrchestrator:
    """Starts, advances, resumes, expires and retries spec review runs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        steps: SpecWorkflowSteps,
        *,
        config: OrchestratorConfig | None = None,
        event_log: StepEventLog | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._steps = steps
        self._config = config or OrchestratorConfig()
        self._log = event_log or StepEventLog(session_factory)

    # --- inbound triggers ---------------------------------------------------

    @traced("workflow.start")
    async def start(self, upload_id: str) -> WorkflowRunResult:
        """Create the run for an upload, or return the one that already exists."""
        variant = (
            WorkflowVariant.WITH_QUESTIONS
            if self._config.question_ticket_enabled
            else WorkflowVariant.APPROVAL_ONLY
        )
        async with self._session_factory() as session, session.begin():
            upload = await UploadRepository(session).get_by_id(upload_id)
            if upload is None:
                raise ResourceNotFoundException("Upload", upload_id)
            runs = WorkflowRunRepository(session)
            existing = await runs.get_by_upload(upload_id)
            if existing is not None:
                return to_result(existing)
            try:
                async with session.begin_nested():
                    run = await runs.create_run(upload_id, upload.solution_id, variant)
                    run.started_at = utc_now()
                    await runs.update(run)
            except IntegrityError:
                # Concurrent start for the same upload: return the winner's run.
                existing = await runs.get_by_upload(upload_id)
                if existing is None:
                    raise
                return to_result(existing)
            result = to_result(run)
        logger.info("Started workflow run %s for upload %s (%s)", result.id, upload_id, variant.value)
        await self._log.record(result.id, upload_id, "run.started", f"Run started ({variant.value})")
        return result

    async def get_run(self, run_id: str) -> WorkflowRunResult:
        async with self._session_factory() as session:
            run = await WorkflowRunRepository(session).get_by_id(run_id)
            if run is None:
                raise ResourceNotFoundException("WorkflowRun", run_id)
            return to_result(run)

    @traced("workflow.advance")
    async def advance(self, run_id: str) -> WorkflowRunResult:
        """Replay the run until it suspends, completes or fails."""
        add_span_attributes(run_id=run_id)
        while True:
            current = await self.get_run(run_id)
            if current.finished:
                return current
            try:
                await self._run_steps(run_id, WorkflowVariant(current.variant))
            except _Suspended as s:
                logger.info("Run %s suspended at %s", run_id, s.step)
                break
            except Exception as exc:
                if await self._record_failure(run_id, exc):
                    continue
                break
            else:
                break
        return await self.get_run(run_id)

    async def handle_ticket_closed(
        self, number: int, repository: str | None = None
    ) -> list[WorkflowRunResult]:
        """Resume runs waiting for question issue number to close."""
        return await self._advance_all(await self.claim_ticket_closed(number, repository))

    async def claim_ticket_closed(self, number: int, repository: str | None = None) -> list[str]:
        """Record a closed question issue on the runs waiting for it. Returns their ids."""
        return await self._claim(
            WaitEvent.TICKET_CLOSED,
            number,
            repository,
            {"number": number, "repository": repository},
        )

    async def handle_request_merged(
        self,
        number: int,
        repository: str | None = None,
        *,
        merged_by: str | None = None,
        merge_commit_sha: str | None = None,
    ) -> list[WorkflowRunResult]:
        """Resume runs waiting for pull request number to merge."""
        return await self._advance_all(
            await self.claim_request_merged(
                number,
                repository,
                merged_by=merged_by,
                merge_commit_sha=merge_commit_sha,
            )
        )

    async def claim_request_merged(
        self,
        number: int,
        repository: str | None = None,
        *,
        merged_by: str | None = None,
        merge_commit_sha: str | None = None,
    ) -> list[str]:
        """Record a merged pull request on the runs waiting for it. Returns their ids."""
        return await self._claim(
            WaitEvent.REQUEST_MERGED,
            number,
            repository,
            {
                "number": number,
                "repository": repository,
                "merged_by": merged_by,
                "merge_commit_sha": merge_commit_sha,
            },
        )

    @traced("workflow.expire_overdue_waits")
    async def expire_overdue_waits(self, now: datetime | None = None) -> int:
        """Fail suspended runs whose wait deadline has passed. Returns how many."""
        now = now or utc_now()
        async with self._session_factory() as session:
            overdue = [
                (run.id, run.awaiting_event, run.awaiting_correlation_id)
                for run in await WorkflowRunRepository(session).list_overdue(now)
            ]
        expired = 0
        for run_id, event, correlation_id in overdue:
            if event is None or correlation_id is None:
                continue
            async with self._session_factory() as session, session.begin():
                claimed = await WorkflowRunRepository(session).claim_wait(
                    run_id, WaitEvent(event), correlation_id
                )
            if claimed:
                await self._fail(run_id, WaitTimeoutException(run_id, event))
                expired += 1
        if expired:
            logger.info("Expired %d overdue workflow wait(s)", expired)
        return expired

    @traced("workflow.redrive_stalled")
    async def redrive_stalled(self, now: datetime | None = None) -> int:
        """Advance runs left between steps by a crash or a lost background task.

        A run qualifies when it is unfinished, not suspended on a wait and
        unchanged for stall_after_minutes. Returns how many were advanced.
        """
        now = now or utc_now()
        before = now - timedelta(minutes=self._config.stall_after_minutes)
        async with self._session_factory() as session:
            stalled = [
                (run.id, run.upload_id)
                for run in await WorkflowRunRepository(session).list_stalled(before)
            ]
        for run_id, upload_id in stalled:
            logger.info("Re-driving stalled workflow run %s", run_id)
            await self._log.record(run_id, upload_id, "run.redriven", "Run re-driven after stalling")
            await self.advance(run_id)
        return len(stalled)

    async def reset_for_retry(self, run_id: str) -> WorkflowRunResult:
        """Clear the failure of a failed run so the next advance replays it."""
        async with self._session_factory() as session, session.begin():
            run = await WorkflowRunRepository(session).get_by_id(run_id)
            if run is None:
                raise ResourceNotFoundException("WorkflowRun", run_id)
            if run.status != WorkflowRunStatus.FAILED.value:
                raise WorkflowStateException(
                    run_id, run.status, f"Only failed runs can be retried (status: {run.status})"
                )
            status = status_after((run.state or {}).get("steps") or {})
            run.status = status.value
            run.attempts = 0
            run.error_message = None
            run.completed_at = None
            await UploadRepository(session).set_status(run.upload_id, UploadStatus(status.value))
            result = to_result(run)
        await self._log.record(run_id, result.upload_id, "run.retried", "Run reset for retry")
        return result

    async def retry(self, run_id: str) -> WorkflowRunResult:
        """Manual intervention for a failed run: reset and replay."""
        await self.reset_for_retry(run_id)
        return await self.advance(run_id)

    # --- replay ---------------------------------------------------------------

    async def _run_steps(self, run_id: str, variant: WorkflowVariant) -> None:
        steps = self._steps
        await self._step(run_id, SETUP, steps.setup)
        analysis = await self._step(run_id, ANALYZE, steps.analyze)
        repository = analysis["repo"]["full_name"]

        if variant == WorkflowVariant.WITH_QUESTIONS and analysis["question_count"] > 0:
            ticket = await self._step(run_id, CREATE_TICKET, steps.create_ticket)
            await self._step(run_id, NOTIFY_QUESTION_REQUEST, steps.notify_question_request)
            await self._wait(
                run_id,
                WAIT_FOR_TICKET_CLOSE,
                WaitEvent.TICKET_CLOSED,
                ticket["issue_number"],
                repository,
            )
            await self._step(run_id, COLLECT_ANSWERS, steps.collect_answers)

        await self._step(run_id, GENERATE_SPEC, steps.generate_spec)
        request = await self._step(run_id, CREATE_REQUEST, steps.create_request)
        await self._step(run_id, NOTIFY_APPROVAL_REQUEST, steps.notify_approval_request)
        # A pull request found already merged on replay needs no wait.
        if not request.get("merged"):
            await self._wait(
                run_id,
                WAIT_FOR_REQUEST_MERGE,
                WaitEvent.REQUEST_MERGED,
                request["pr_number"],
                repository,
            )
        await self._step(run_id, FINALIZE, steps.finalize)
        await self._step(run_id, NOTIFY_COMPLETION, steps.notify_completion)

    async def _step(self, run_id: str, name: str, handler: StepHandler) -> dict[str, Any]:
        async with self._session_factory() as session:
            run = await WorkflowRunRepository(session).get_by_id(run_id)
            if run is None:
                raise ResourceNotFoundException("WorkflowRun", run_id)
            memoized = (run.state or {}).get("steps") or {}
            if name in memoized:
                return memoized[name]
            upload_id = run.upload_id

        await self._log.step_started(run_id, upload_id, name)
        try:
            result = await self._execute(run_id, name, handler)
        except Exception as exc:
            await self._log.step_failed(run_id, upload_id, name, exc)
            raise
        await self._log.step_succeeded(run_id, upload_id, name)
        return result

    @traced("workflow.step")
    async def _execute(self, run_id: str, name: str, handler: StepHandler) -> dict[str, Any]:
        add_span_attributes(run_id=run_id, step_name=name)
        async with self._session_factory() as session, session.begin():
            run = await WorkflowRunRepository(session).get_by_id(run_id)
            if run is None:
                raise ResourceNotFoundException("WorkflowRun", run_id)
            state = dict(run.state or {})
            steps = dict(state.get("steps") or {})
            ctx = StepContext(
                session=session,
                run=run,
                key=idempotency_key(run_id, name),
                steps=steps,
                waits=dict(state.get("waits") or {}),
            )
            result = await handler(ctx)
            steps[name] = result
            state["steps"] = steps
            run.state = state
            run.current_step = name
            run.attempts = 0
            run.error_message = None
            status = STEP_STATUS.get(name)
            if status is not None and run.status != status.value:
                run.status = status.value
                await UploadRepository(session).set_status(run.upload_id, UploadStatus(status.value))
            await session.flush()
        return result

    async def _wait(
        self,
        run_id: str,
        name: str,
        event: WaitEvent,
        correlation_id: int,
        repository: str | None,
    ) -> dict[str, Any]:
        """Return the recorded event for this wait, or persist the wait and suspend."""
        async with self._session_factory() as session, session.begin():
            run = await WorkflowRunRepository(session).get_by_id(run_id)
            if run is None:
                raise ResourceNotFoundException("WorkflowRun", run_id)
            received = ((run.state or {}).get("waits") or {}).get(name)
            if received is not None:
                return received
            already_waiting = (
                run.awaiting_event == event.value
                and run.awaiting_correlation_id == correlation_id
            )
            run.awaiting_event = event.value
            run.awaiting_step = name
            run.awaiting_correlation_id = correlation_id
            run.awaiting_repository = repository
            run.current_step = name
            if run.wait_deadline is None:
                run.wait_deadline = utc_now() + timedelta(days=self._config.wait_timeout_days)
            deadline = ensure_utc(run.wait_deadline)
            upload_id = run.upload_id
        if not already_waiting:
            await self._log.record(
                run_id,
                upload_id,
                f"step.{name}.started",
                f"Waiting for {event.value} #{correlation_id}",
                metadata={
                    "event": event.value,
                    "correlation_id": correlation_id,
                    "repository": repository,
                    "deadline": deadline.isoformat() if deadline else None,
                },
            )
        raise _Suspended(name)

    async def _claim(
        self,
        event: WaitEvent,
        number: int,
        repository: str | None,
        payload: dict[str, Any],
    ) -> list[str]:
        """Persist the received event on every run waiting for it.

        Committed before any replay starts: once this returns, the event
        survives a crash and redrive_stalled() can finish the resumption.
        """
        now = utc_now()
        resumed: list[tuple[str, str | None, str]] = []
        expired: list[str] = []
        async with self._session_factory() as session, session.begin():
            runs = WorkflowRunRepository(session)
            for run in await runs.find_awaiting(event, number, repository):
                step = run.awaiting_step or ""
                deadline = ensure_utc(run.wait_deadline)
                if not await runs.claim_wait(run.id, event, number):
                    continue
                if deadline is not None and deadline < now:
                    expired.append(run.id)
                    continue
                state = dict(run.state or {})
                waits = dict(state.get("waits") or {})
                waits[step] = {**payload, "received_at": now.isoformat()}
                state["waits"] = waits
                run.state = state
                resumed.append((run.id, run.upload_id, step))
            await session.flush()

        if not resumed and not expired:
            logger.info("No run waiting for %s #%d (%s)", event.value, number, repository)
        for run_id in expired:
            await self._fail(run_id, WaitTimeoutException(run_id, event.value))
        for run_id, upload_id, step in resumed:
            await self._log.step_succeeded(run_id, upload_id, step, metadata=payload)
        return [run_id for run_id, _, _ in resumed]

    async def _advance_all(self, run_ids: list[str]) -> list[WorkflowRunResult]:
        return [await self.advance(run_id) for run_id in run_ids]

    # --- failure handling -------------------------------------------------------

    async def _record_failure(self, run_id: str, exc: Exception) -> bool:
        """Count the failed attempt. True when the run should be replayed again."""
        retryable = getattr(exc, "retryable", True)
        async with self._session_factory() as session, session.begin():
            run = await WorkflowRunRepository(session).get_by_id(run_id)
            if run is None:
                raise ResourceNotFoundException("WorkflowRun", run_id)
            run.attempts = (run.attempts or 0) + 1
            run.error_message = _error_message(exc)
            attempts = run.attempts
            if retryable and attempts <= self._config.max_retries:
                logger.warning(
                    "Run %s failed at %s (attempt %d/%d), retrying: %s",
                    run_id,
                    run.current_step,
                    attempts,
                    self._config.max_retries + 1,
                    run.error_message,
                )
                return True
        if isinstance(exc, FlowSpecException):
            logger.error("Run %s failed: %s", run_id, _error_message(exc))
        else:
            logger.error("Run %s failed with unexpected error", run_id, exc_info=exc)
        await self._fail(run_id, exc)
        return False

    async def _fail(self, run_id: str, exc: Exception) -> None:
        async with self._session_factory() as session, session.begin():
            run = await WorkflowRunRepository(session).get_by_id(run_id)
            if run is None:
                raise ResourceNotFoundException("WorkflowRun", run_id)
            run.status = WorkflowRunStatus.FAILED.value
            run.error_message = _error_message(exc)
            run.awaiting_event = None
            run.awaiting_step = None
            run.awaiting_correlation_id = None
            run.awaiting_repository = None
            run.wait_deadline = None
            await UploadRepository(session).set_status(run.upload_id, UploadStatus.FAILED)
            upload_id = run.upload_id
        await self._log.record(run_id, upload_id, "run.failed", _error_message(exc))
