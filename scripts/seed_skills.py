"""Seed the skill definition knowledge base with the built-in connector records.

Usage:
    python -m scripts.seed_skills
Existing records are left untouched; safe to run repeatedly.
"""

import asyncio

import flowspec.infrastructure.persistence.database as database
from flowspec.application.use_cases.skills import seed_skill_definitions
from flowspec.infrastructure.persistence.repositories import SkillDefinitionRepository
from flowspec.shared.telemetry.logging import setup_logging


async def main() -> None:
    """Insert missing built-in skill definitions."""
    setup_logging()
    async with database.get_session_factory()() as session:
        async with session.begin():
            result = await seed_skill_definitions(SkillDefinitionRepository(session))
    await database.dispose_engine()
    print(f"Seeded skill definitions: {result.inserted} inserted, {result.total} known")


if __name__ == "__main__":
    asyncio.run(main())
