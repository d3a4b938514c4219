"""Skill definition (knowledge base) use cases."""

from flowspec.application.use_cases.skills.seed_skills import (
    SEED_SKILL_DEFINITIONS,
    seed_skill_definitions,
)

__all__ = ["SEED_SKILL_DEFINITIONS", "seed_skill_definitions"]
