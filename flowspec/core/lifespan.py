"""Application lifespan: startup and shutdown.

Composition root for the workflow: the shared HTTP client, the external
clients built on it and the orchestrator are created here and stored on
app.state. No business logic.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from flowspec.core.config import Settings, get_settings
from flowspec.infrastructure.external.archive import HttpArchiveSource
from flowspec.infrastructure.external.email import create_notifier
from flowspec.infrastructure.external.github import GitHubClient
from flowspec.infrastructure.persistence import database
from flowspec.infrastructure.services import (
    OrchestratorConfig,
    SpecWorkflowSteps,
    WorkflowOrchestrator,
    WorkflowStepConfig,
)
from flowspec.shared.telemetry.logging import setup_logging

logger = logging.getLogger(__name__)


def build_code_host(
    settings: Settings, http_client: httpx.AsyncClient | None = None
) -> GitHubClient | None:
    """GitHub client, or None when GITHUB_TOKEN / GITHUB_OWNER are not configured."""
    token = settings.github_token.get_secret_value() if settings.github_token else ""
    if not token or not settings.github_owner:
        return None
    return GitHubClient(
        token,
        settings.github_owner,
        api_url=settings.github_api_url,
        private_repos=settings.github_private_repos,
        timeout=settings.github_timeout_seconds,
        http_client=http_client,
    )


def build_orchestrator(
    settings: Settings, http_client: httpx.AsyncClient | None = None
) -> WorkflowOrchestrator:
    """Wire the orchestrator from settings (also used by scripts)."""
    steps = SpecWorkflowSteps(
        archive_source=HttpArchiveSource(
            max_bytes=settings.archive_max_bytes,
            timeout=settings.archive_download_timeout_seconds,
            http_client=http_client,
        ),
        notifier=create_notifier(settings, http_client=http_client),
        code_host=build_code_host(settings, http_client),
        config=WorkflowStepConfig.from_settings(settings),
    )
    return WorkflowOrchestrator(
        database.get_session_factory(),
        steps,
        config=OrchestratorConfig.from_settings(settings),
    )


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup order: logging, shared HTTP client, orchestrator, SQLAlchemy
    instrumentation (if telemetry is enabled). Shutdown order: shared HTTP
    client close, telemetry shutdown, SQL engine dispose.
    """
    settings = get_settings()
    setup_logging()

    # ---- Startup ----
    # Shared HTTP client for GitHub, Resend and archive downloads (connection reuse).
    app.state.http_client = httpx.AsyncClient(timeout=30.0, follow_redirects=True)
    app.state.orchestrator = build_orchestrator(settings, app.state.http_client)
    if build_code_host(settings) is None:
        logger.warning("GITHUB_TOKEN/GITHUB_OWNER not set; workflow runs will fail at analyze")

    # Tracer provider and FastAPI instrumentation are set up in create_app().
    telemetry = getattr(app.state, "telemetry", None)
    if telemetry is not None:
        telemetry.instrument_sqlalchemy(database.get_engine())

    yield

    # ---- Shutdown ----
    if getattr(app.state, "http_client", None) is not None:
        await app.state.http_client.aclose()
        app.state.http_client = None
        logger.info("HTTP client closed")

    if getattr(app.state, "telemetry", None) is not None:
        app.state.telemetry.shutdown()
        logger.info("Telemetry shutdown complete")

    await database.dispose_engine()
    logger.info("Database engine disposed")
