"""Integration tests for spec document versioning and the single current version."""

from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import IntegrityError

from flowspec.domain.exceptions import ResourceNotFoundException
from flowspec.infrastructure.persistence.repositories import (
    SolutionRepository,
    SpecDocumentRepository,
)

APPROVED_AT = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


async def _draft(session, solution_id: str, version: int):
    return await SpecDocumentRepository(session).create_draft(
        solution_id=solution_id,
        upload_id=None,
        workflow_run_id=None,
        version_number=version,
        markdown_content=f"# v{version}\n",
        change_reason=None,
    )


async def test_version_counter_continues_after_existing_documents(session_factory) -> None:
    async with session_factory() as session, session.begin():
        solution = await SolutionRepository(session).create_solution("Invoice Intake")
        for version in (1, 2, 3):
            await _draft(session, solution.id, version)
        solutions = SolutionRepository(session)
        assert await solutions.reserve_next_version(solution.id) == 4
        assert await solutions.reserve_next_version(solution.id) == 5
        assert await SpecDocumentRepository(session).max_version(solution.id) == 3


async def test_reserve_version_for_unknown_solution(session_factory) -> None:
    async with session_factory() as session:
        with pytest.raises(ResourceNotFoundException):
            await SolutionRepository(session).reserve_next_version("missing")


async def test_promote_leaves_single_current(session_factory) -> None:
    async with session_factory() as session, session.begin():
        solution = await SolutionRepository(session).create_solution("Invoice Intake")
        first = await _draft(session, solution.id, 1)
        second = await _draft(session, solution.id, 2)
        documents = SpecDocumentRepository(session)

        await documents.promote_to_current(first.id, approved_at=APPROVED_AT, approved_by="a")
        await documents.promote_to_current(
            second.id, approved_at=APPROVED_AT, approved_by="b", commit_sha="abc"
        )
        current = await documents.get_current(solution.id)
        assert current.id == second.id
        assert current.approved_by == "b"
        assert current.github_commit_sha == "abc"

        # Promoting the current document again changes nothing.
        again = await documents.promote_to_current(second.id, approved_at=APPROVED_AT)
        assert again.approved_by == "b"

    async with session_factory() as session:
        documents = await SpecDocumentRepository(session).list_by_solution(solution.id)
        assert [(d.version_number, d.is_current) for d in documents] == [(2, True), (1, False)]


async def test_duplicate_version_number_is_rejected(session_factory) -> None:
    async with session_factory() as session:
        solution = await SolutionRepository(session).create_solution("Invoice Intake")
        await _draft(session, solution.id, 1)
        with pytest.raises(IntegrityError):
            await _draft(session, solution.id, 1)
