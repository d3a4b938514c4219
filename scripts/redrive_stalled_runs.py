"""Advance workflow runs that stopped between steps.

A run stops there when the process dies mid-step, or after a webhook event
was recorded but before its replay finished.

Usage:
    python -m scripts.redrive_stalled_runs
Intended for cron (e.g. every 15 minutes). Equivalent to
POST /api/v1/workflow-runs/redrive-stalled.
"""

import asyncio

import httpx

import flowspec.infrastructure.persistence.database as database
from flowspec.core.config import get_settings
from flowspec.core.lifespan import build_orchestrator
from flowspec.shared.telemetry.logging import setup_logging


async def main() -> None:
    settings = get_settings()
    setup_logging()
    async with httpx.AsyncClient(timeout=settings.github_timeout_seconds) as http_client:
        orchestrator = build_orchestrator(settings, http_client)
        advanced = await orchestrator.redrive_stalled()
    await database.dispose_engine()
    print(f"Re-drove {advanced} stalled workflow run(s)")


if __name__ == "__main__":
    asyncio.run(main())
