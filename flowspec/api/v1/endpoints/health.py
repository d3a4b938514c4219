"""Health check endpoints for liveness and readiness probes."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from flowspec.core.config import Settings, get_settings
from flowspec.infrastructure.persistence.database import get_session_factory
from flowspec.schemas.health import (
    HealthResponse,
    IntegrationStatus,
    ReadinessErrorResponse,
    ReadinessResponse,
)
from flowspec.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse(version=get_settings().app_version)


def _integrations(settings: Settings) -> IntegrationStatus:
    def configured(secret) -> bool:
        return bool(secret and secret.get_secret_value())

    return IntegrationStatus(
        code_host=configured(settings.github_token) and bool(settings.github_owner),
        webhook=configured(settings.github_webhook_secret),
        email_delivery="resend" if configured(settings.resend_api_key) else "log",
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Database unreachable", "model": ReadinessErrorResponse}},
)
async def readiness_check() -> ReadinessResponse | JSONResponse:
    """200 with the integration summary when the database answers; 503 otherwise."""
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Readiness check failed: %s", e)
        return JSONResponse(
            status_code=503,
            content=ReadinessErrorResponse(message="database unreachable").model_dump(),
        )
    return ReadinessResponse(integrations=_integrations(get_settings()))
