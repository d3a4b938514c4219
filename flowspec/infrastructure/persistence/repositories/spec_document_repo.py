"""SpecDocument repository: drafts, version lookups and the current-flag flip."""

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from flowspec.domain.exceptions import ResourceNotFoundException
from flowspec.infrastructure.persistence.models import SpecDocument
from flowspec.infrastructure.persistence.repositories.base import BaseRepository


class SpecDocumentRepository(BaseRepository[SpecDocument]):
    """Spec document repository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, SpecDocument)

    async def get_by_run(self, workflow_run_id: str) -> SpecDocument | None:
        result = await self.db.execute(
            select(SpecDocument).where(SpecDocument.workflow_run_id == workflow_run_id)
        )
        return result.scalar_one_or_none()

    async def get_current(self, solution_id: str) -> SpecDocument | None:
        result = await self.db.execute(
            select(SpecDocument).where(
                SpecDocument.solution_id == solution_id,
                SpecDocument.is_current.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def list_by_solution(self, solution_id: str) -> list[SpecDocument]:
        result = await self.db.execute(
            select(SpecDocument)
            .where(SpecDocument.solution_id == solution_id)
            .order_by(SpecDocument.version_number.desc())
        )
        return list(result.scalars().all())

    async def max_version(self, solution_id: str) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.max(SpecDocument.version_number), 0)).where(
                SpecDocument.solution_id == solution_id
            )
        )
        return int(result.scalar_one())

    async def create_draft(
        self,
        *,
        solution_id: str,
        upload_id: str | None,
        workflow_run_id: str | None,
        version_number: int,
        markdown_content: str,
        change_reason: str | None,
    ) -> SpecDocument:
        return await self.create(
            SpecDocument(
                solution_id=solution_id,
                upload_id=upload_id,
                workflow_run_id=workflow_run_id,
                version_number=version_number,
                markdown_content=markdown_content,
                change_reason=change_reason,
                is_current=False,
            )
        )

    async def set_pull_request(
        self, document_id: str, pr_number: int, commit_sha: str | None
    ) -> None:
        await self.db.execute(
            update(SpecDocument)
            .where(SpecDocument.id == document_id)
            .values(github_pr_number=pr_number, github_commit_sha=commit_sha)
        )

    async def promote_to_current(
        self,
        document_id: str,
        *,
        approved_at: datetime,
        approved_by: str | None = None,
        commit_sha: str | None = None,
    ) -> SpecDocument:
        """Make document_id the only current document of its solution.

        Demote and promote run in the caller's transaction; readers see either
        the old current document or the new one, never both or neither.
        Promoting the already-current document is a no-op.
        """
        doc = await self.get_by_id(document_id)
        if doc is None:
            raise ResourceNotFoundException("SpecDocument", document_id)
        await self.db.execute(
            update(SpecDocument)
            .where(
                SpecDocument.solution_id == doc.solution_id,
                SpecDocument.is_current.is_(True),
                SpecDocument.id != document_id,
            )
            .values(is_current=False)
            .execution_options(synchronize_session=False)
        )
        if not doc.is_current:
            doc.is_current = True
            doc.approved_at = approved_at
            doc.approved_by = approved_by
            if commit_sha:
                doc.github_commit_sha = commit_sha
        return await self.update(doc)
