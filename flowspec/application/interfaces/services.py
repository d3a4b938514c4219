"""Service interfaces (ports) for the application layer.

Protocols define the contracts of the workflow's external collaborators so
the orchestrator can be built with real clients or with test doubles.
"""

from __future__ import annotations

from typing import Protocol

from flowspec.application.dtos.code_host import (
    FileRef,
    IssueComment,
    IssueRef,
    PullRequestRef,
    RepositoryInfo,
)


class ICodeHostClient(Protocol):
    """Version-control host operations used by the spec workflow."""

    @property
    def owner(self) -> str:
        """Account or organization that owns the spec repositories."""
        ...

    async def get_or_create_repository(
        self, name: str, description: str | None = None
    ) -> RepositoryInfo:
        """Return the repository, creating it (initialized, private by default) if absent."""
        ...

    async def find_issue_by_marker(self, repo: str, marker: str) -> IssueRef | None:
        """Return an issue (any state) whose body contains marker."""
        ...

    async def create_issue(
        self, repo: str, title: str, body: str, labels: list[str] | None = None
    ) -> IssueRef:
        """Open an issue."""
        ...

    async def list_issue_comments(self, repo: str, number: int) -> list[IssueComment]:
        """Return the comments of an issue in creation order."""
        ...

    async def create_branch(self, repo: str, branch: str, base: str) -> str:
        """Create branch from base (reusing it if it exists); return its head sha."""
        ...

    async def get_file(self, repo: str, path: str, ref: str) -> FileRef | None:
        """Return the file at path on ref, or None."""
        ...

    async def commit_file(
        self,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: str | None = None,
    ) -> str:
        """Create or update path on branch; return the commit sha."""
        ...

    async def get_latest_commit_sha(self, repo: str, path: str, ref: str) -> str | None:
        """Return the sha of the last commit touching path on ref."""
        ...

    async def find_pull_request(self, repo: str, head: str) -> PullRequestRef | None:
        """Return a pull request (any state) whose head branch is head."""
        ...

    async def create_pull_request(
        self, repo: str, title: str, body: str, head: str, base: str
    ) -> PullRequestRef:
        """Open a pull request."""
        ...

    async def ensure_webhook(self, repo: str, url: str, secret: str) -> bool:
        """Register the webhook unless one already targets url; True when created."""
        ...


class IArchiveSource(Protocol):
    """Fetches uploaded package archives."""

    async def fetch(self, file_url: str) -> bytes:
        """Return the archive bytes behind file_url."""
        ...


class IEmailSender(Protocol):
    """Delivers one rendered email."""

    async def send(
        self,
        to_emails: list[str],
        subject: str,
        html: str,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        """Send the email; raise ExternalServiceException on delivery failure."""
        ...


class INotifier(Protocol):
    """The three notification contracts of the spec workflow."""

    async def send_question_request(
        self,
        to: str,
        package_name: str,
        issue_url: str,
        question_count: int,
        *,
        idempotency_key: str | None = None,
    ) -> None: ...

    async def send_approval_request(
        self,
        to: str,
        package_name: str,
        pr_url: str,
        version: int,
        *,
        idempotency_key: str | None = None,
    ) -> None: ...

    async def send_completion(
        self,
        to: str,
        package_name: str,
        version: int,
        repo_url: str,
        *,
        idempotency_key: str | None = None,
    ) -> None: ...
