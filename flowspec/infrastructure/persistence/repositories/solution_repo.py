"""Solution and Upload repositories."""

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from flowspec.domain.exceptions import ResourceNotFoundException
from flowspec.infrastructure.persistence.models import Solution, SpecDocument, Upload
from flowspec.infrastructure.persistence.repositories.base import BaseRepository
from flowspec.shared.enums import UploadStatus


class SolutionRepository(BaseRepository[Solution]):
    """Solution repository, including the per-solution spec version counter."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, Solution)

    async def create_solution(
        self,
        name: str,
        *,
        description: str | None = None,
        owner_email: str | None = None,
        github_repo_name: str | None = None,
    ) -> Solution:
        return await self.create(
            Solution(
                name=name,
                description=description,
                owner_email=owner_email,
                github_repo_name=github_repo_name,
            )
        )

    async def set_repo_name(self, solution_id: str, repo_name: str) -> None:
        await self.db.execute(
            update(Solution)
            .where(Solution.id == solution_id)
            .values(github_repo_name=repo_name)
        )

    async def reserve_next_version(self, solution_id: str) -> int:
        """Atomically hand out the next spec version number for a solution.

        Single UPDATE ... RETURNING: the counter moves to
        max(counter, highest existing version) + 1, so concurrent runs for the
        same solution serialize on the solution row and never share a number.
        """
        highest = (
            select(func.coalesce(func.max(SpecDocument.version_number), 0))
            .where(SpecDocument.solution_id == solution_id)
            .scalar_subquery()
        )
        result = await self.db.execute(
            update(Solution)
            .where(Solution.id == solution_id)
            .values(
                spec_version_counter=case(
                    (Solution.spec_version_counter >= highest, Solution.spec_version_counter),
                    else_=highest,
                )
                + 1
            )
            .returning(Solution.spec_version_counter)
            .execution_options(synchronize_session=False)
        )
        version = result.scalar_one_or_none()
        if version is None:
            raise ResourceNotFoundException("Solution", solution_id)
        return int(version)


class UploadRepository(BaseRepository[Upload]):
    """Upload repository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, Upload)

    async def create_upload(self, solution_id: str, file_url: str) -> Upload:
        return await self.create(
            Upload(
                solution_id=solution_id,
                file_url=file_url,
                status=UploadStatus.PENDING.value,
            )
        )

    async def list_by_solution(self, solution_id: str) -> list[Upload]:
        result = await self.db.execute(
            select(Upload)
            .where(Upload.solution_id == solution_id)
            .order_by(Upload.created_at.desc(), Upload.id)
        )
        return list(result.scalars().all())

    async def set_status(self, upload_id: str, status: UploadStatus | str) -> None:
        value = status.value if isinstance(status, UploadStatus) else status
        await self.db.execute(
            update(Upload).where(Upload.id == upload_id).values(status=value)
        )

    async def set_issue_number(self, upload_id: str, number: int) -> None:
        await self.db.execute(
            update(Upload).where(Upload.id == upload_id).values(github_issue_number=number)
        )

    async def set_pr_number(self, upload_id: str, number: int) -> None:
        await self.db.execute(
            update(Upload).where(Upload.id == upload_id).values(github_pr_number=number)
        )
