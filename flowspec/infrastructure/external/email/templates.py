"""Notification templates: template key → subject/body (Jinja)."""

from __future__ import annotations

from typing import Any

from jinja2 import Environment, StrictUndefined, Template

QUESTION_REQUEST = "question_request"
APPROVAL_REQUEST = "approval_request"
COMPLETION = "completion"

# key → (subject_template, html_body_template)
_DEFAULT_TEMPLATES: dict[str, tuple[str, str]] = {
    QUESTION_REQUEST: (
        "[flowspec] {{ package_name }}: {{ question_count }} question(s) need answers",
        "<p>The analysis of <strong>{{ package_name }}</strong> raised "
        "{{ question_count }} open question(s).</p>\n"
        '<p>Please answer them on the issue and close it when done: '
        '<a href="{{ issue_url }}">{{ issue_url }}</a></p>',
    ),
    APPROVAL_REQUEST: (
        "[flowspec] {{ package_name }}: spec v{{ version }} is ready for review",
        "<p>Version {{ version }} of the specification for "
        "<strong>{{ package_name }}</strong> is ready.</p>\n"
        '<p>Review and merge the pull request to approve it: '
        '<a href="{{ pr_url }}">{{ pr_url }}</a></p>',
    ),
    COMPLETION: (
        "[flowspec] {{ package_name }}: spec v{{ version }} approved",
        "<p>Version {{ version }} of the specification for "
        "<strong>{{ package_name }}</strong> was approved and is now current.</p>\n"
        '<p>Repository: <a href="{{ repo_url }}">{{ repo_url }}</a></p>',
    ),
}


class NotificationTemplateRenderer:
    """Renders subject and HTML body for a notification template key."""

    def __init__(
        self,
        templates: dict[str, tuple[str, str]] | None = None,
    ) -> None:
        self._templates = templates or _DEFAULT_TEMPLATES
        # Subjects are plain text; only bodies are escaped.
        self._subject_env = Environment(autoescape=False, undefined=StrictUndefined)
        self._body_env = Environment(autoescape=True, undefined=StrictUndefined)
        self._compiled: dict[str, tuple[Template, Template]] = {}
        for key, (sub_str, body_str) in self._templates.items():
            self._compiled[key] = (
                self._subject_env.from_string(sub_str),
                self._body_env.from_string(body_str),
            )

    def render(self, template_key: str, **context: Any) -> tuple[str, str]:
        """Render subject and body for the template key. Raises KeyError if key unknown."""
        if template_key not in self._compiled:
            raise KeyError(f"Unknown notification template: {template_key}")
        subject_tpl, body_tpl = self._compiled[template_key]
        subject = " ".join(subject_tpl.render(**context).split())
        return subject, body_tpl.render(**context)
