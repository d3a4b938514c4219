"""Fail workflow runs whose wait deadline has passed.

Usage:
    python -m scripts.expire_workflow_waits
Intended for cron (e.g. daily). Equivalent to POST /api/v1/workflow-runs/expire-waits.
"""

import asyncio

import httpx

import flowspec.infrastructure.persistence.database as database
from flowspec.core.config import get_settings
from flowspec.core.lifespan import build_orchestrator
from flowspec.shared.telemetry.logging import setup_logging


async def main() -> None:
    """Expire overdue waits and print how many runs were failed."""
    settings = get_settings()
    setup_logging()
    async with httpx.AsyncClient(timeout=30.0) as http_client:
        orchestrator = build_orchestrator(settings, http_client)
        expired = await orchestrator.expire_overdue_waits()
    await database.dispose_engine()
    print(f"Expired {expired} workflow run(s)")


if __name__ == "__main__":
    asyncio.run(main())
