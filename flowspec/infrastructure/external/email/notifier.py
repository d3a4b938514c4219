"""Workflow notifications rendered from templates and handed to an email sender."""

from __future__ import annotations

from flowspec.application.interfaces.services import IEmailSender
from flowspec.infrastructure.external.email.templates import (
    APPROVAL_REQUEST,
    COMPLETION,
    QUESTION_REQUEST,
    NotificationTemplateRenderer,
)


class EmailNotifier:
    """INotifier implementation: one template per notification contract."""

    def __init__(
        self,
        sender: IEmailSender,
        renderer: NotificationTemplateRenderer | None = None,
    ) -> None:
        self._sender = sender
        self._renderer = renderer or NotificationTemplateRenderer()

    async def _send(
        self, to: str, template_key: str, idempotency_key: str | None, **context: object
    ) -> None:
        subject, html = self._renderer.render(template_key, **context)
        await self._sender.send([to], subject, html, idempotency_key=idempotency_key)

    async def send_question_request(
        self,
        to: str,
        package_name: str,
        issue_url: str,
        question_count: int,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        await self._send(
            to,
            QUESTION_REQUEST,
            idempotency_key,
            package_name=package_name,
            issue_url=issue_url,
            question_count=question_count,
        )

    async def send_approval_request(
        self,
        to: str,
        package_name: str,
        pr_url: str,
        version: int,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        await self._send(
            to,
            APPROVAL_REQUEST,
            idempotency_key,
            package_name=package_name,
            pr_url=pr_url,
            version=version,
        )

    async def send_completion(
        self,
        to: str,
        package_name: str,
        version: int,
        repo_url: str,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        await self._send(
            to,
            COMPLETION,
            idempotency_key,
            package_name=package_name,
            version=version,
            repo_url=repo_url,
        )
