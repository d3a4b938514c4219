"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from flowspec.api.v1.dependencies.
"""

from fastapi import APIRouter

from flowspec.api.v1.endpoints import (
    github_webhook,
    health,
    skill_definitions,
    solutions,
    uploads,
    workflow_runs,
)

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(solutions.router, prefix="/solutions", tags=["solutions"])
api_router.include_router(uploads.router, prefix="/uploads", tags=["uploads"])
api_router.include_router(
    workflow_runs.router, prefix="/workflow-runs", tags=["workflow-runs"]
)
api_router.include_router(
    skill_definitions.router, prefix="/skill-definitions", tags=["skill-definitions"]
)
api_router.include_router(github_webhook.router, prefix="/github", tags=["github"])
