"""Email senders: Resend over HTTPS, and a log-only fallback."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from flowspec.domain.exceptions import ExternalServiceException
from flowspec.shared.telemetry.logging import get_logger
from flowspec.shared.utils.datetime import utc_now

logger = get_logger(__name__)


class LogOnlyEmailSender:
    """IEmailSender implementation that logs instead of sending email.

    Used when no RESEND_API_KEY is configured.
    """

    async def send(
        self,
        to_emails: list[str],
        subject: str,
        html: str,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        recipients = list(to_emails or [])
        subject_preview = (subject or "")[:80]
        if not recipients:
            logger.info("Email: no recipients, skipping send (subject=%r)", subject_preview)
            return
        logger.info(
            "Email: would send to %d recipients (subject=%r, key=%s)",
            len(recipients),
            subject_preview,
            idempotency_key,
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Email recipients: %s (at %s)", recipients, utc_now().isoformat())
        logger.debug("Email body (first 500 chars): %s", (html or "")[:500])


class ResendEmailSender:
    """IEmailSender over the Resend HTTP API.

    The idempotency key is forwarded as the Idempotency-Key header so a
    replayed notify step does not deliver the same email twice.
    """

    def __init__(
        self,
        api_key: str,
        from_email: str,
        *,
        api_url: str = "https://api.resend.com",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._from_email = from_email
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._shared_http = http_client

    @asynccontextmanager
    async def _http_cm(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield shared HTTP client or a short-lived one."""
        if self._shared_http is not None:
            yield self._shared_http
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    async def send(
        self,
        to_emails: list[str],
        subject: str,
        html: str,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        recipients = [e for e in (to_emails or []) if e]
        if not recipients:
            logger.info("Resend: no recipients, skipping send (subject=%r)", subject[:80])
            return
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        payload = {
            "from": self._from_email,
            "to": recipients,
            "subject": subject,
            "html": html,
        }
        try:
            async with self._http_cm() as client:
                response = await client.post(
                    f"{self._api_url}/emails",
                    json=payload,
                    headers=headers,
                    timeout=self._timeout,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ExternalServiceException(
                "resend",
                f"send failed with {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceException("resend", f"send failed: {e}") from e
        logger.info("Resend: sent %r to %d recipient(s)", subject[:80], len(recipients))
