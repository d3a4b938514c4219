"""Notifier factory: picks the email sender from settings."""

import httpx

from flowspec.application.interfaces.services import IEmailSender
from flowspec.core.config import Settings
from flowspec.infrastructure.external.email.notifier import EmailNotifier
from flowspec.infrastructure.external.email.senders import (
    LogOnlyEmailSender,
    ResendEmailSender,
)
from flowspec.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


def create_email_sender(
    settings: Settings,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> IEmailSender:
    """Return ResendEmailSender when RESEND_API_KEY is set, else LogOnlyEmailSender.

    Args:
        settings: Application settings.
        http_client: Optional shared httpx.AsyncClient for connection reuse.
    """
    api_key = settings.resend_api_key.get_secret_value() if settings.resend_api_key else ""
    if not api_key:
        logger.info("RESEND_API_KEY not set; notifications are logged only")
        return LogOnlyEmailSender()
    return ResendEmailSender(
        api_key,
        settings.email_from,
        api_url=settings.resend_api_url,
        http_client=http_client,
    )


def create_notifier(
    settings: Settings,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> EmailNotifier:
    return EmailNotifier(create_email_sender(settings, http_client=http_client))
