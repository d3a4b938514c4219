"""Email notifications: templates, senders and the workflow notifier."""

from flowspec.infrastructure.external.email.factory import create_email_sender, create_notifier
from flowspec.infrastructure.external.email.notifier import EmailNotifier
from flowspec.infrastructure.external.email.senders import LogOnlyEmailSender, ResendEmailSender
from flowspec.infrastructure.external.email.templates import NotificationTemplateRenderer

__all__ = [
    "EmailNotifier",
    "LogOnlyEmailSender",
    "NotificationTemplateRenderer",
    "ResendEmailSender",
    "create_email_sender",
    "create_notifier",
]
