"""WorkflowRun and WorkflowStepLog repositories."""

from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from flowspec.infrastructure.persistence.models import WorkflowRun, WorkflowStepLog
from flowspec.infrastructure.persistence.repositories.base import BaseRepository
from flowspec.shared.enums import WaitEvent, WorkflowRunStatus, WorkflowVariant


class WorkflowRunRepository(BaseRepository[WorkflowRun]):
    """Workflow run repository: creation, wait lookups and wait claims."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, WorkflowRun)

    async def get_by_upload(self, upload_id: str) -> WorkflowRun | None:
        result = await self.db.execute(
            select(WorkflowRun).where(WorkflowRun.upload_id == upload_id)
        )
        return result.scalar_one_or_none()

    async def create_run(
        self, upload_id: str, solution_id: str, variant: WorkflowVariant
    ) -> WorkflowRun:
        return await self.create(
            WorkflowRun(
                upload_id=upload_id,
                solution_id=solution_id,
                variant=variant.value,
                status=WorkflowRunStatus.PENDING.value,
                attempts=0,
                state={"steps": {}, "waits": {}},
            )
        )

    async def find_awaiting(
        self, event: WaitEvent, correlation_id: int, repository: str | None
    ) -> list[WorkflowRun]:
        """Runs suspended on event with this correlation id.

        A run that recorded a repository only matches events from that
        repository (compared case-insensitively).
        """
        q = select(WorkflowRun).where(
            WorkflowRun.awaiting_event == event.value,
            WorkflowRun.awaiting_correlation_id == correlation_id,
        )
        if repository:
            q = q.where(
                or_(
                    WorkflowRun.awaiting_repository.is_(None),
                    func.lower(WorkflowRun.awaiting_repository) == repository.lower(),
                )
            )
        result = await self.db.execute(q.order_by(WorkflowRun.created_at))
        return list(result.scalars().all())

    async def claim_wait(
        self, run_id: str, event: WaitEvent, correlation_id: int
    ) -> bool:
        """Clear the wait if the run is still suspended on it. True for the one caller that does."""
        result = await self.db.execute(
            update(WorkflowRun)
            .where(
                WorkflowRun.id == run_id,
                WorkflowRun.awaiting_event == event.value,
                WorkflowRun.awaiting_correlation_id == correlation_id,
            )
            .values(
                awaiting_event=None,
                awaiting_step=None,
                awaiting_correlation_id=None,
                awaiting_repository=None,
                wait_deadline=None,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_overdue(self, now: datetime, limit: int = 500) -> list[WorkflowRun]:
        result = await self.db.execute(
            select(WorkflowRun)
            .where(
                WorkflowRun.awaiting_event.is_not(None),
                WorkflowRun.wait_deadline.is_not(None),
                WorkflowRun.wait_deadline < now,
            )
            .order_by(WorkflowRun.wait_deadline)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_stalled(self, before: datetime, limit: int = 500) -> list[WorkflowRun]:
        """Unfinished runs that are not suspended and have not changed since before."""
        result = await self.db.execute(
            select(WorkflowRun)
            .where(
                WorkflowRun.status != WorkflowRunStatus.FAILED.value,
                WorkflowRun.completed_at.is_(None),
                WorkflowRun.awaiting_event.is_(None),
                WorkflowRun.updated_at < before,
            )
            .order_by(WorkflowRun.updated_at)
            .limit(limit)
        )
        return list(result.scalars().all())


class WorkflowStepLogRepository(BaseRepository[WorkflowStepLog]):
    """Append-only step event log."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, WorkflowStepLog)

    async def add_entry(
        self,
        *,
        run_id: str | None,
        upload_id: str | None,
        source: str,
        event_type: str,
        level: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.db.add(
            WorkflowStepLog(
                run_id=run_id,
                upload_id=upload_id,
                source=source,
                event_type=event_type,
                level=level,
                message=message,
                log_metadata=metadata,
            )
        )
        await self.db.flush()

    async def list_by_run(self, run_id: str, limit: int = 500) -> list[WorkflowStepLog]:
        result = await self.db.execute(
            select(WorkflowStepLog)
            .where(WorkflowStepLog.run_id == run_id)
            .order_by(WorkflowStepLog.id)
            .limit(limit)
        )
        return list(result.scalars().all())
