"""DTOs returned by the code host client (GitHub)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RepositoryInfo:
    name: str
    full_name: str
    html_url: str
    default_branch: str


@dataclass(frozen=True)
class IssueRef:
    number: int
    html_url: str
    state: str = "open"


@dataclass(frozen=True)
class IssueComment:
    author: str | None
    body: str
    created_at: str | None = None


@dataclass(frozen=True)
class PullRequestRef:
    number: int
    html_url: str
    state: str = "open"
    merged: bool = False


@dataclass(frozen=True)
class FileRef:
    """A file on a branch: its blob sha and decoded content."""

    path: str
    sha: str
    content: str
