"""GitHub REST API client (repositories, issues, branches, contents, pulls, hooks)."""

import base64
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

import httpx

from flowspec.application.dtos.code_host import (
    FileRef,
    IssueComment,
    IssueRef,
    PullRequestRef,
    RepositoryInfo,
)
from flowspec.domain.exceptions import ExternalServiceException
from flowspec.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

API_VERSION = "2022-11-28"
PAGE_SIZE = 100
WEBHOOK_EVENTS = ["issues", "pull_request"]


class GitHubClient:
    """Async GitHub client. Implements ICodeHostClient.

    Every non-2xx response not handled by the caller raises
    ExternalServiceException(service="github").
    """

    def __init__(
        self,
        token: str,
        owner: str,
        *,
        api_url: str = "https://api.github.com",
        private_repos: bool = True,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self._owner = owner
        self._api_url = api_url.rstrip("/")
        self._private_repos = private_repos
        self._timeout = timeout
        self._shared_http = http_client

    @property
    def owner(self) -> str:
        return self._owner

    @asynccontextmanager
    async def _http_cm(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield shared HTTP client or a short-lived one (connection reuse when shared)."""
        if self._shared_http is not None:
            yield self._shared_http
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }

    def _repo_path(self, repo: str) -> str:
        return f"/repos/{quote(self._owner, safe='')}/{quote(repo, safe='')}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        ok: tuple[int, ...] = (200, 201),
        passthrough: tuple[int, ...] = (),
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request; statuses in passthrough are returned to the caller unraised."""
        url = f"{self._api_url}{path}"
        try:
            async with self._http_cm() as client:
                response = await client.request(
                    method, url, headers=self._headers(), timeout=self._timeout, **kwargs
                )
        except httpx.HTTPError as e:
            raise ExternalServiceException("github", f"{method} {path} failed: {e}") from e
        if response.status_code in ok or response.status_code in passthrough:
            return response
        raise ExternalServiceException(
            "github",
            f"{method} {path} returned {response.status_code}: {_error_message(response)}",
            status_code=response.status_code,
        )

    async def _paginate(self, path: str, params: dict[str, Any] | None = None) -> AsyncIterator[dict[str, Any]]:
        page = 1
        while True:
            response = await self._request(
                "GET", path, params={**(params or {}), "per_page": PAGE_SIZE, "page": page}
            )
            items = response.json()
            for item in items:
                yield item
            if len(items) < PAGE_SIZE:
                return
            page += 1

    async def get_or_create_repository(
        self, name: str, description: str | None = None
    ) -> RepositoryInfo:
        response = await self._request("GET", self._repo_path(name), passthrough=(404,))
        if response.status_code == 404:
            # 422: created concurrently by another run; read it back below.
            created = await self._request(
                "POST",
                "/user/repos",
                passthrough=(422,),
                json={
                    "name": name,
                    "private": self._private_repos,
                    "auto_init": True,
                    "description": description or "",
                },
            )
            if created.status_code == 422:
                response = await self._request("GET", self._repo_path(name))
            else:
                response = created
                logger.info("Created GitHub repository %s/%s", self._owner, name)
        data = response.json()
        return RepositoryInfo(
            name=data["name"],
            full_name=data["full_name"],
            html_url=data["html_url"],
            default_branch=data.get("default_branch") or "main",
        )

    async def find_issue_by_marker(
        self, repo: str, marker: str, label: str | None = None
    ) -> IssueRef | None:
        params: dict[str, Any] = {"state": "all"}
        if label:
            params["labels"] = label
        async for item in self._paginate(f"{self._repo_path(repo)}/issues", params):
            if "pull_request" in item:
                continue
            if marker in (item.get("body") or ""):
                return IssueRef(
                    number=item["number"], html_url=item["html_url"], state=item["state"]
                )
        return None

    async def create_issue(
        self, repo: str, title: str, body: str, labels: list[str] | None = None
    ) -> IssueRef:
        response = await self._request(
            "POST",
            f"{self._repo_path(repo)}/issues",
            json={"title": title, "body": body, "labels": labels or []},
        )
        data = response.json()
        return IssueRef(number=data["number"], html_url=data["html_url"], state=data["state"])

    async def list_issue_comments(self, repo: str, number: int) -> list[IssueComment]:
        comments = []
        async for item in self._paginate(f"{self._repo_path(repo)}/issues/{number}/comments"):
            comments.append(
                IssueComment(
                    author=(item.get("user") or {}).get("login"),
                    body=item.get("body") or "",
                    created_at=item.get("created_at"),
                )
            )
        return comments

    async def _get_ref_sha(self, repo: str, branch: str) -> str | None:
        response = await self._request(
            "GET",
            f"{self._repo_path(repo)}/git/ref/heads/{quote(branch)}",
            passthrough=(404,),
        )
        if response.status_code == 404:
            return None
        return response.json()["object"]["sha"]

    async def create_branch(self, repo: str, branch: str, base: str) -> str:
        existing = await self._get_ref_sha(repo, branch)
        if existing is not None:
            return existing
        base_sha = await self._get_ref_sha(repo, base)
        if base_sha is None:
            raise ExternalServiceException("github", f"base branch '{base}' not found in {repo}")
        response = await self._request(
            "POST",
            f"{self._repo_path(repo)}/git/refs",
            passthrough=(422,),
            json={"ref": f"refs/heads/{branch}", "sha": base_sha},
        )
        if response.status_code == 422:
            # Reference already exists: created by an earlier attempt.
            sha = await self._get_ref_sha(repo, branch)
            if sha is None:
                raise ExternalServiceException(
                    "github", f"could not create branch '{branch}': {_error_message(response)}", 422
                )
            return sha
        return response.json()["object"]["sha"]

    async def get_file(self, repo: str, path: str, ref: str) -> FileRef | None:
        response = await self._request(
            "GET",
            f"{self._repo_path(repo)}/contents/{quote(path)}",
            passthrough=(404,),
            params={"ref": ref},
        )
        if response.status_code == 404:
            return None
        data = response.json()
        content = base64.b64decode(data.get("content") or "").decode("utf-8")
        return FileRef(path=data["path"], sha=data["sha"], content=content)

    async def commit_file(
        self,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if sha:
            payload["sha"] = sha
        response = await self._request(
            "PUT", f"{self._repo_path(repo)}/contents/{quote(path)}", json=payload
        )
        return response.json()["commit"]["sha"]

    async def get_latest_commit_sha(self, repo: str, path: str, ref: str) -> str | None:
        response = await self._request(
            "GET",
            f"{self._repo_path(repo)}/commits",
            params={"path": path, "sha": ref, "per_page": 1},
        )
        commits = response.json()
        return commits[0]["sha"] if commits else None

    async def find_pull_request(self, repo: str, head: str) -> PullRequestRef | None:
        response = await self._request(
            "GET",
            f"{self._repo_path(repo)}/pulls",
            params={"head": f"{self._owner}:{head}", "state": "all", "per_page": PAGE_SIZE},
        )
        for item in response.json():
            return _pull_request(item)
        return None

    async def create_pull_request(
        self, repo: str, title: str, body: str, head: str, base: str
    ) -> PullRequestRef:
        response = await self._request(
            "POST",
            f"{self._repo_path(repo)}/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )
        return _pull_request(response.json())

    async def ensure_webhook(self, repo: str, url: str, secret: str) -> bool:
        response = await self._request("GET", f"{self._repo_path(repo)}/hooks")
        for hook in response.json():
            if (hook.get("config") or {}).get("url") == url:
                return False
        await self._request(
            "POST",
            f"{self._repo_path(repo)}/hooks",
            json={
                "name": "web",
                "active": True,
                "events": WEBHOOK_EVENTS,
                "config": {
                    "url": url,
                    "content_type": "json",
                    "secret": secret,
                    "insecure_ssl": "0",
                },
            },
        )
        logger.info("Registered webhook on %s/%s", self._owner, repo)
        return True


def _pull_request(data: dict[str, Any]) -> PullRequestRef:
    return PullRequestRef(
        number=data["number"],
        html_url=data["html_url"],
        state=data.get("state", "open"),
        merged=bool(data.get("merged_at") or data.get("merged")),
    )


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("message") or data)[:200]
    return str(data)[:200]
