"""GitHub webhook ingress.

Every delivery is authenticated with X-Hub-Signature-256 before the body is
parsed. Verified 'issues' (closed) and 'pull_request' (closed and merged)
events resume the suspended workflow run correlated by number and repository;
everything else is acknowledged and ignored.
"""

import hashlib
import hmac
import json
from typing import Annotated, Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from flowspec.api.v1.dependencies import get_orchestrator
from flowspec.core.config import get_settings
from flowspec.core.limiter import limit_webhooks
from flowspec.domain.exceptions import SignatureInvalidException, ValidationException
from flowspec.infrastructure.services import WorkflowOrchestrator
from flowspec.schemas.webhook import WebhookAckResponse
from flowspec.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"
_SIGNATURE_PREFIX = "sha256="
_HEX_DIGEST_LENGTH = 64


def compute_signature(secret: str, body: bytes) -> str:
    """Return the header value GitHub sends for body: 'sha256=<hex>'."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"{_SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, body: bytes, signature_header: str | None) -> None:
    """Raise SignatureInvalidException unless the header matches HMAC-SHA256(secret, body)."""
    if not signature_header or not signature_header.startswith(_SIGNATURE_PREFIX):
        raise SignatureInvalidException()
    received = signature_header[len(_SIGNATURE_PREFIX):].strip().lower()
    if len(received) != _HEX_DIGEST_LENGTH:
        raise SignatureInvalidException()
    expected = compute_signature(secret, body)[len(_SIGNATURE_PREFIX):]
    if not hmac.compare_digest(received, expected):
        raise SignatureInvalidException()


def _repository(payload: dict[str, Any]) -> str | None:
    return (payload.get("repository") or {}).get("full_name")


def _dispatched(
    event: str,
    run_ids: list[str],
    background_tasks: BackgroundTasks,
    orchestrator: WorkflowOrchestrator,
) -> WebhookAckResponse:
    for run_id in run_ids:
        background_tasks.add_task(orchestrator.advance, run_id)
    return WebhookAckResponse(event=event, dispatched=True, resumed_runs=run_ids)


@router.post("/webhook", response_model=WebhookAckResponse)
@limit_webhooks
async def github_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    orchestrator: Annotated[WorkflowOrchestrator, Depends(get_orchestrator)],
):
    """Receive a GitHub delivery.

    GITHUB_WEBHOOK_SECRET must be set (503 otherwise). The event is recorded
    on the waiting runs before the 200 is sent; only the replay runs after
    the response, so GitHub's delivery timeout is never hit.
    """
    body = await request.body()
    secret = get_settings().github_webhook_secret
    if secret is None or not secret.get_secret_value():
        raise HTTPException(
            status_code=503,
            detail="GitHub webhook is not configured (GITHUB_WEBHOOK_SECRET is not set).",
        )
    verify_signature(secret.get_secret_value(), body, request.headers.get(SIGNATURE_HEADER))

    event = request.headers.get(EVENT_HEADER, "")
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise ValidationException("Webhook body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise ValidationException("Webhook body must be a JSON object")

    action = payload.get("action")
    logger.info(
        "GitHub delivery %s: event=%s action=%s",
        request.headers.get(DELIVERY_HEADER, "-"),
        event,
        action,
    )

    if event == "issues" and action == "closed":
        issue = payload.get("issue") or {}
        if isinstance(issue.get("number"), int):
            run_ids = await orchestrator.claim_ticket_closed(issue["number"], _repository(payload))
            return _dispatched(event, run_ids, background_tasks, orchestrator)

    if event == "pull_request" and action == "closed":
        pull = payload.get("pull_request") or {}
        if pull.get("merged") and isinstance(pull.get("number"), int):
            run_ids = await orchestrator.claim_request_merged(
                pull["number"],
                _repository(payload),
                merged_by=(pull.get("merged_by") or {}).get("login"),
                merge_commit_sha=pull.get("merge_commit_sha"),
            )
            return _dispatched(event, run_ids, background_tasks, orchestrator)

    return WebhookAckResponse(event=event or "unknown", dispatched=False)
