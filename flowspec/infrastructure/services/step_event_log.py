"""Workflow step event log: one row per step start, success and failure."""

from __future__ import annotations

import traceback
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from flowspec.infrastructure.persistence.repositories import WorkflowStepLogRepository
from flowspec.shared.enums import StepLogLevel
from flowspec.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

SOURCE = "workflow"
_MAX_TRACEBACK_CHARS = 8000


class StepEventLog:
    """Writes step events in their own short transaction.

    Recording never raises: a log write that fails is reported to the
    application logger and dropped, so it cannot fail the step it describes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(
        self,
        run_id: str,
        upload_id: str | None,
        event_type: str,
        message: str,
        *,
        level: StepLogLevel = StepLogLevel.INFO,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                await WorkflowStepLogRepository(session).add_entry(
                    run_id=run_id,
                    upload_id=upload_id,
                    source=SOURCE,
                    event_type=event_type,
                    level=level.value,
                    message=message,
                    metadata=metadata,
                )
        except Exception:
            logger.warning(
                "Could not record workflow event %s for run %s",
                event_type,
                run_id,
                exc_info=True,
            )

    async def step_started(self, run_id: str, upload_id: str | None, step: str) -> None:
        await self.record(run_id, upload_id, f"step.{step}.started", f"Step {step} started")

    async def step_succeeded(
        self,
        run_id: str,
        upload_id: str | None,
        step: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.record(
            run_id,
            upload_id,
            f"step.{step}.succeeded",
            f"Step {step} succeeded",
            metadata=metadata,
        )

    async def step_failed(
        self, run_id: str, upload_id: str | None, step: str, exc: BaseException
    ) -> None:
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        await self.record(
            run_id,
            upload_id,
            f"step.{step}.failed",
            f"Step {step} failed: {exc}",
            level=StepLogLevel.ERROR,
            metadata={
                "error": str(exc),
                "error_type": type(exc).__name__,
                "traceback": tb[-_MAX_TRACEBACK_CHARS:],
            },
        )
