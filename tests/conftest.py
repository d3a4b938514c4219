"""Pytest configuration and fixtures for flowspec.

Every test that touches the database gets its own SQLite file under
tmp_path (DATABASE_URL is set and the settings cache cleared per test).
The orchestrator is built with in-memory fakes for the archive host, the
code host and the notifier, so no test reaches the network.
"""

import io
import json
import zipfile
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import flowspec.infrastructure.persistence.database as database
from flowspec.application.dtos.code_host import (
    FileRef,
    IssueComment,
    IssueRef,
    PullRequestRef,
    RepositoryInfo,
)
from flowspec.core.config import get_settings
from flowspec.core.limiter import limiter
from flowspec.domain.exceptions import ExternalServiceException
from flowspec.infrastructure.persistence import models  # noqa: F401  (registers tables)
from flowspec.infrastructure.services import (
    OrchestratorConfig,
    SpecWorkflowSteps,
    WorkflowOrchestrator,
    WorkflowStepConfig,
)

WEBHOOK_SECRET = "test-webhook-secret"
OWNER = "acme"


# --- package archives ----------------------------------------------------------


def host(connection: str | None, operation: str | None) -> dict[str, Any]:
    """inputs.host block of a trigger or action."""
    return {"inputs": {"host": {"connectionName": connection, "operationId": operation}}}


def flow_definition(
    *,
    display_name: str = "Invoice Intake",
    triggers: dict[str, Any] | None = None,
    actions: dict[str, Any] | None = None,
    connection_references: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "name": "flow-1",
        "properties": {
            "displayName": display_name,
            "connectionReferences": connection_references or {},
            "definition": {"triggers": triggers or {}, "actions": actions or {}},
        },
    }


def sample_flow() -> dict[str, Any]:
    """One recurring OneDrive trigger and one Outlook action, no skills registered."""
    return flow_definition(
        triggers={
            "When_a_file_is_created": {
                "type": "OpenApiConnection",
                "recurrence": {"interval": 15, "frequency": "Minute"},
                **host("shared_onedrive", "OnNewFilesV2"),
            }
        },
        actions={
            "Send_an_email": {
                "type": "OpenApiConnection",
                "runAfter": {},
                **host("shared_office365", "SendEmailV2"),
            }
        },
        connection_references={
            "shared_onedrive": {
                "apiName": "onedrive",
                "id": "/providers/Microsoft.PowerApps/apis/shared_onedrive",
            },
            "shared_office365": {
                "apiName": "office365",
                "id": "/providers/Microsoft.PowerApps/apis/shared_office365",
            },
        },
    )


def build_package(
    flows: dict[str, dict[str, Any]] | None = None,
    *,
    display_name: str = "Invoice Intake",
    created_time: str = "2024-05-01T10:00:00Z",
    resources: dict[str, Any] | None = None,
    extra_entries: dict[str, bytes] | None = None,
    omit: tuple[str, ...] = (),
) -> bytes:
    """Build a package ZIP in memory. flows maps flow id to definition.json content."""
    flows = flows if flows is not None else {"flow-1": sample_flow()}
    entries: dict[str, bytes] = {
        "manifest.json": json.dumps(
            {
                "details": {"displayName": display_name, "createdTime": created_time},
                "resources": resources or {},
            }
        ).encode(),
        "Microsoft.Flow/flows/manifest.json": json.dumps(
            {"flowAssets": {"assetPaths": list(flows)}}
        ).encode(),
    }
    for flow_id, definition in flows.items():
        entries[f"Microsoft.Flow/flows/{flow_id}/definition.json"] = json.dumps(
            definition
        ).encode()
    entries.update(extra_entries or {})
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in entries.items():
            if name not in omit:
                archive.writestr(name, data)
    return buffer.getvalue()


# --- fakes ---------------------------------------------------------------------


class FakeArchiveSource:
    """Serves archives registered by URL."""

    def __init__(self) -> None:
        self.archives: dict[str, bytes] = {}
        self.fetches: list[str] = []

    async def fetch(self, file_url: str) -> bytes:
        self.fetches.append(file_url)
        if file_url not in self.archives:
            raise ExternalServiceException("archive", f"{file_url} not found", 404)
        return self.archives[file_url]


@dataclass
class _Issue:
    number: int
    title: str
    body: str
    labels: list[str]
    state: str = "open"
    comments: list[IssueComment] = field(default_factory=list)


@dataclass
class _PullRequest:
    number: int
    title: str
    body: str
    head: str
    base: str
    merged: bool = False


class FakeCodeHost:
    """In-memory GitHub. fail_on maps a method name to exceptions raised on its next calls."""

    def __init__(self, owner: str = OWNER) -> None:
        self._owner = owner
        self.repos: dict[str, RepositoryInfo] = {}
        self.issues: dict[str, list[_Issue]] = {}
        self.pulls: dict[str, list[_PullRequest]] = {}
        self.branches: dict[tuple[str, str], str] = {}
        self.files: dict[tuple[str, str, str], FileRef] = {}
        self.hooks: dict[str, list[str]] = {}
        self.calls: list[str] = []
        self.fail_on: dict[str, list[Exception]] = {}
        self._next_number = 1
        self._next_sha = 1

    @property
    def owner(self) -> str:
        return self._owner

    def _call(self, name: str) -> None:
        self.calls.append(name)
        pending = self.fail_on.get(name)
        if pending:
            raise pending.pop(0)

    def _number(self) -> int:
        number = self._next_number
        self._next_number += 1
        return number

    def _sha(self) -> str:
        sha = f"{self._next_sha:040x}"
        self._next_sha += 1
        return sha

    def count(self, name: str) -> int:
        return self.calls.count(name)

    async def get_or_create_repository(
        self, name: str, description: str | None = None
    ) -> RepositoryInfo:
        self._call("get_or_create_repository")
        if name not in self.repos:
            self.repos[name] = RepositoryInfo(
                name=name,
                full_name=f"{self._owner}/{name}",
                html_url=f"https://github.com/{self._owner}/{name}",
                default_branch="main",
            )
            self.branches[(name, "main")] = self._sha()
        return self.repos[name]

    async def find_issue_by_marker(self, repo: str, marker: str) -> IssueRef | None:
        self._call("find_issue_by_marker")
        for issue in self.issues.get(repo, []):
            if marker in issue.body:
                return self._issue_ref(repo, issue)
        return None

    def _issue_ref(self, repo: str, issue: _Issue) -> IssueRef:
        return IssueRef(
            number=issue.number,
            html_url=f"https://github.com/{self._owner}/{repo}/issues/{issue.number}",
            state=issue.state,
        )

    async def create_issue(
        self, repo: str, title: str, body: str, labels: list[str] | None = None
    ) -> IssueRef:
        self._call("create_issue")
        issue = _Issue(number=self._number(), title=title, body=body, labels=labels or [])
        self.issues.setdefault(repo, []).append(issue)
        return self._issue_ref(repo, issue)

    def issue(self, repo: str, number: int) -> _Issue:
        return next(i for i in self.issues[repo] if i.number == number)

    async def list_issue_comments(self, repo: str, number: int) -> list[IssueComment]:
        self._call("list_issue_comments")
        return list(self.issue(repo, number).comments)

    async def create_branch(self, repo: str, branch: str, base: str) -> str:
        self._call("create_branch")
        if (repo, branch) not in self.branches:
            self.branches[(repo, branch)] = self.branches[(repo, base)]
        return self.branches[(repo, branch)]

    async def get_file(self, repo: str, path: str, ref: str) -> FileRef | None:
        self._call("get_file")
        return self.files.get((repo, ref, path))

    async def commit_file(
        self,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: str | None = None,
    ) -> str:
        self._call("commit_file")
        commit = self._sha()
        self.files[(repo, branch, path)] = FileRef(path=path, sha=self._sha(), content=content)
        self.branches[(repo, branch)] = commit
        return commit

    async def get_latest_commit_sha(self, repo: str, path: str, ref: str) -> str | None:
        self._call("get_latest_commit_sha")
        return self.branches.get((repo, ref))

    def _pr_ref(self, repo: str, pr: _PullRequest) -> PullRequestRef:
        return PullRequestRef(
            number=pr.number,
            html_url=f"https://github.com/{self._owner}/{repo}/pull/{pr.number}",
            state="closed" if pr.merged else "open",
            merged=pr.merged,
        )

    async def find_pull_request(self, repo: str, head: str) -> PullRequestRef | None:
        self._call("find_pull_request")
        for pr in self.pulls.get(repo, []):
            if pr.head == head:
                return self._pr_ref(repo, pr)
        return None

    async def create_pull_request(
        self, repo: str, title: str, body: str, head: str, base: str
    ) -> PullRequestRef:
        self._call("create_pull_request")
        pr = _PullRequest(number=self._number(), title=title, body=body, head=head, base=base)
        self.pulls.setdefault(repo, []).append(pr)
        return self._pr_ref(repo, pr)

    def pull(self, repo: str, number: int) -> _PullRequest:
        return next(p for p in self.pulls[repo] if p.number == number)

    async def ensure_webhook(self, repo: str, url: str, secret: str) -> bool:
        self._call("ensure_webhook")
        hooks = self.hooks.setdefault(repo, [])
        if url in hooks:
            return False
        hooks.append(url)
        return True


class FakeNotifier:
    """Records notifications. fail_on maps a contract name to exceptions raised on its next calls."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.fail_on: dict[str, list[Exception]] = {}

    def _record(self, name: str, **kwargs: Any) -> None:
        pending = self.fail_on.get(name)
        if pending:
            raise pending.pop(0)
        self.sent.append((name, kwargs))

    def names(self) -> list[str]:
        return [name for name, _ in self.sent]

    async def send_question_request(
        self, to, package_name, issue_url, question_count, *, idempotency_key=None
    ) -> None:
        self._record(
            "question_request",
            to=to,
            package_name=package_name,
            issue_url=issue_url,
            question_count=question_count,
            idempotency_key=idempotency_key,
        )

    async def send_approval_request(
        self, to, package_name, pr_url, version, *, idempotency_key=None
    ) -> None:
        self._record(
            "approval_request",
            to=to,
            package_name=package_name,
            pr_url=pr_url,
            version=version,
            idempotency_key=idempotency_key,
        )

    async def send_completion(
        self, to, package_name, version, repo_url, *, idempotency_key=None
    ) -> None:
        self._record(
            "completion",
            to=to,
            package_name=package_name,
            version=version,
            repo_url=repo_url,
            idempotency_key=idempotency_key,
        )


# --- fixtures --------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _disable_rate_limits():
    """The limiter's in-memory counters are process-wide; keep them out of tests."""
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
async def session_factory(
    tmp_path, monkeypatch: pytest.MonkeyPatch
) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Fresh SQLite database with all tables; the shared engine points at it."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'flowspec.db'}")
    monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", WEBHOOK_SECRET)
    get_settings.cache_clear()
    await database.dispose_engine()
    engine = database.get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(database.Base.metadata.create_all)
    yield database.get_session_factory()
    await database.dispose_engine()
    get_settings.cache_clear()


@pytest.fixture
def archive_source() -> FakeArchiveSource:
    return FakeArchiveSource()


@pytest.fixture
def code_host() -> FakeCodeHost:
    return FakeCodeHost()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def orchestrator_config() -> OrchestratorConfig:
    return OrchestratorConfig(question_ticket_enabled=True, max_retries=2, wait_timeout_days=30)


@pytest.fixture
def orchestrator(
    session_factory: async_sessionmaker[AsyncSession],
    archive_source: FakeArchiveSource,
    code_host: FakeCodeHost,
    notifier: FakeNotifier,
    orchestrator_config: OrchestratorConfig,
) -> WorkflowOrchestrator:
    steps = SpecWorkflowSteps(
        archive_source=archive_source,
        notifier=notifier,
        code_host=code_host,
        config=WorkflowStepConfig(
            repo_prefix="spec-",
            default_branch="main",
            webhook_url="https://flowspec.example.com/api/v1/github/webhook",
            webhook_secret=WEBHOOK_SECRET,
        ),
    )
    return WorkflowOrchestrator(session_factory, steps, config=orchestrator_config)


@pytest.fixture
async def client(orchestrator: WorkflowOrchestrator) -> AsyncIterator[AsyncClient]:
    """Async HTTP client against a fresh app wired to the fake-backed orchestrator."""
    from flowspec.main import create_app

    app = create_app()
    app.state.orchestrator = orchestrator
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_package():
    """build_package(flows=None, **options) -> ZIP bytes."""
    return build_package


@pytest.fixture
def make_flow():
    """flow_definition(display_name=..., triggers=..., actions=..., connection_references=...)."""
    return flow_definition


@pytest.fixture
def sample_package() -> bytes:
    """The one-flow package: recurring OneDrive trigger, Outlook action."""
    return build_package()
