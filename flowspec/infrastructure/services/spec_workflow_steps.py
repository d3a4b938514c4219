"""Step implementations of the spec review workflow.

Each step receives a StepContext bound to the step's transaction and
returns a JSON-serializable result. The orchestrator stores that result in
the run state in the same transaction, so a step's database writes and its
memoized result commit together. Steps that call GitHub look for what an
earlier attempt may already have created before creating anything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from flowspec.application.dtos.analysis import FlowAnalysisResult, count_questions
from flowspec.application.dtos.workflow import SpecMetadata
from flowspec.application.interfaces.services import (
    IArchiveSource,
    ICodeHostClient,
    INotifier,
)
from flowspec.application.services.flow_analyzer import FlowAnalyzer
from flowspec.application.services.package_parser import (
    package_from_document,
    package_to_document,
    parse_package,
)
from flowspec.application.services.spec_renderer import (
    cell,
    default_change_reason,
    render_package_spec,
)
from flowspec.core.config import Settings
from flowspec.domain.exceptions import (
    ConfigurationMissingException,
    ExternalServiceException,
    ResourceNotFoundException,
    WorkflowStateException,
)
from flowspec.infrastructure.persistence.models import WorkflowRun
from flowspec.infrastructure.persistence.repositories import (
    SkillDefinitionRepository,
    SolutionRepository,
    SpecDocumentRepository,
    UploadRepository,
)
from flowspec.shared.enums import WorkflowRunStatus
from flowspec.shared.telemetry.logging import get_logger
from flowspec.shared.utils.datetime import utc_now
from flowspec.shared.utils.text import slugify

logger = get_logger(__name__)

SETUP = "setup"
ANALYZE = "analyze"
CREATE_TICKET = "create-ticket"
NOTIFY_QUESTION_REQUEST = "notify-question-request"
WAIT_FOR_TICKET_CLOSE = "wait-for-ticket-close"
COLLECT_ANSWERS = "collect-answers"
GENERATE_SPEC = "generate-spec"
CREATE_REQUEST = "create-request"
NOTIFY_APPROVAL_REQUEST = "notify-approval-request"
WAIT_FOR_REQUEST_MERGE = "wait-for-request-merge"
FINALIZE = "finalize"
NOTIFY_COMPLETION = "notify-completion"

STEP_ORDER: tuple[str, ...] = (
    SETUP,
    ANALYZE,
    CREATE_TICKET,
    NOTIFY_QUESTION_REQUEST,
    WAIT_FOR_TICKET_CLOSE,
    COLLECT_ANSWERS,
    GENERATE_SPEC,
    CREATE_REQUEST,
    NOTIFY_APPROVAL_REQUEST,
    WAIT_FOR_REQUEST_MERGE,
    FINALIZE,
    NOTIFY_COMPLETION,
)

# Run (and upload) status once the step has succeeded. Wait steps keep the
# status of the step before them.
STEP_STATUS: dict[str, WorkflowRunStatus] = {
    SETUP: WorkflowRunStatus.ANALYZING,
    ANALYZE: WorkflowRunStatus.ANALYZING,
    CREATE_TICKET: WorkflowRunStatus.QUESTIONS_OPEN,
    NOTIFY_QUESTION_REQUEST: WorkflowRunStatus.QUESTIONS_OPEN,
    COLLECT_ANSWERS: WorkflowRunStatus.DRAFTING,
    GENERATE_SPEC: WorkflowRunStatus.DRAFTING,
    CREATE_REQUEST: WorkflowRunStatus.PR_OPEN,
    NOTIFY_APPROVAL_REQUEST: WorkflowRunStatus.PR_OPEN,
    FINALIZE: WorkflowRunStatus.COMPLETED,
    NOTIFY_COMPLETION: WorkflowRunStatus.COMPLETED,
}

QUESTION_LABEL = "spec-questions"


def status_after(completed_steps: dict[str, Any]) -> WorkflowRunStatus:
    """Status implied by the furthest memoized step (pending when none)."""
    status = WorkflowRunStatus.PENDING
    for name in STEP_ORDER:
        if name in completed_steps and name in STEP_STATUS:
            status = STEP_STATUS[name]
    return status


def issue_marker(key: str) -> str:
    """Hidden marker embedded in the question issue body to find it again."""
    return f"<!-- flowspec:{key} -->"


@dataclass
class StepContext:
    """What a step sees: its transaction, the run row and earlier results."""

    session: AsyncSession
    run: WorkflowRun
    key: str
    steps: dict[str, Any] = field(default_factory=dict)
    waits: dict[str, Any] = field(default_factory=dict)

    def result(self, step: str) -> dict[str, Any]:
        """Memoized result of an earlier step; the step must have completed."""
        if step not in self.steps:
            raise WorkflowStateException(
                self.run.id, self.run.status, f"Step {step} has not completed"
            )
        return self.steps[step]


@dataclass(frozen=True)
class WorkflowStepConfig:
    """Settings values the steps depend on."""

    repo_prefix: str = "spec-"
    default_branch: str = "main"
    webhook_url: str | None = None
    webhook_secret: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> WorkflowStepConfig:
        secret = settings.github_webhook_secret
        return cls(
            repo_prefix=settings.github_repo_prefix,
            default_branch=settings.github_default_branch,
            webhook_url=settings.webhook_url,
            webhook_secret=secret.get_secret_value() if secret else None,
        )


def _question_issue_body(
    package_name: str, analyses: list[FlowAnalysisResult], marker: str
) -> str:
    lines = [
        f"The analysis of **{package_name}** raised the questions below.",
        "",
        "Answer them as comments on this issue, then close the issue to continue "
        "with the specification.",
        "",
    ]
    for analysis in analyses:
        if not analysis.questions:
            continue
        lines.append(f"### {cell(analysis.flow_display_name or analysis.flow_id)}")
        lines.append("")
        for i, q in enumerate(analysis.questions, start=1):
            lines.append(f"{i}. **[{q.category.value}] {cell(q.target)}**: {cell(q.question)}")
            lines.append(f"   - {cell(q.reason)}")
        lines.append("")
    lines.append(marker)
    return "\n".join(lines) + "\n"


def _pull_request_body(
    package_name: str,
    version: int,
    path: str,
    issue_url: str | None,
    answers: list[dict[str, Any]],
) -> str:
    lines = [
        f"Specification v{version} for **{package_name}**.",
        "",
        f"- Document: `{path}`",
        "- Merge this pull request to approve the specification.",
    ]
    if issue_url:
        lines.append(f"- Questions: {issue_url}")
    if answers:
        lines.extend(["", "### Answers", ""])
        for answer in answers:
            body = "\n".join(f"> {line}" for line in answer["body"].splitlines()) or ">"
            lines.append(f"**{answer.get('author') or 'unknown'}**:")
            lines.append(body)
            lines.append("")
    return "\n".join(lines).rstrip("\n") + "\n"


class SpecWorkflowSteps:
    """The side effects of each workflow step. Holds no per-run state."""

    def __init__(
        self,
        *,
        archive_source: IArchiveSource,
        notifier: INotifier,
        code_host: ICodeHostClient | None,
        config: WorkflowStepConfig | None = None,
    ) -> None:
        self._archive = archive_source
        self._notifier = notifier
        self._code_host = code_host
        self._config = config or WorkflowStepConfig()

    def _require_code_host(self) -> ICodeHostClient:
        if self._code_host is None:
            raise ConfigurationMissingException("GITHUB_TOKEN/GITHUB_OWNER")
        return self._code_host

    async def setup(self, ctx: StepContext) -> dict[str, Any]:
        """Load upload and solution, fetch the archive and parse it."""
        upload = await UploadRepository(ctx.session).get_by_id(ctx.run.upload_id)
        if upload is None:
            raise ResourceNotFoundException("Upload", ctx.run.upload_id)
        solution = await SolutionRepository(ctx.session).get_by_id(upload.solution_id)
        if solution is None:
            raise ResourceNotFoundException("Solution", upload.solution_id)
        package = parse_package(await self._archive.fetch(upload.file_url))
        logger.info(
            "Run %s: parsed package %r (%d flow(s))",
            ctx.run.id,
            package.name,
            len(package.flows),
        )
        return {
            "solution_id": solution.id,
            "solution_name": solution.name,
            "owner_email": solution.owner_email,
            "package_name": package.name,
            "package_created_at": package.manifest.created_time,
            "package": package_to_document(package),
        }

    async def analyze(self, ctx: StepContext) -> dict[str, Any]:
        """Analyze the package and make sure the spec repository exists."""
        setup = ctx.result(SETUP)
        package = package_from_document(setup["package"])
        skills = await SkillDefinitionRepository(ctx.session).list_all()
        analyses = FlowAnalyzer(skills).analyze(package)
        code_host = self._require_code_host()

        solutions = SolutionRepository(ctx.session)
        solution = await solutions.get_by_id(setup["solution_id"])
        if solution is None:
            raise ResourceNotFoundException("Solution", setup["solution_id"])
        repo_name = solution.github_repo_name or (
            f"{self._config.repo_prefix}{slugify(solution.name, fallback='solution')}"
        )
        repo = await code_host.get_or_create_repository(
            repo_name, description=f"Business flow specifications for {solution.name}"
        )
        if solution.github_repo_name != repo.name:
            await solutions.set_repo_name(solution.id, repo.name)
        await self._ensure_webhook(code_host, repo.name)
        return {
            "analyses": [a.to_dict() for a in analyses],
            "question_count": count_questions(analyses),
            "repo": {
                "name": repo.name,
                "full_name": repo.full_name,
                "html_url": repo.html_url,
                "default_branch": repo.default_branch,
            },
        }

    async def _ensure_webhook(self, code_host: ICodeHostClient, repo: str) -> None:
        if not (self._config.webhook_url and self._config.webhook_secret):
            return
        try:
            await code_host.ensure_webhook(
                repo, self._config.webhook_url, self._config.webhook_secret
            )
        except ExternalServiceException as e:
            logger.warning("Could not register webhook on %s: %s", repo, e.message)

    async def create_ticket(self, ctx: StepContext) -> dict[str, Any]:
        """Open the question issue (or find the one an earlier attempt opened)."""
        code_host = self._require_code_host()
        setup = ctx.result(SETUP)
        analysis = ctx.result(ANALYZE)
        repo = analysis["repo"]["name"]
        marker = issue_marker(ctx.key)
        issue = await code_host.find_issue_by_marker(repo, marker)
        if issue is None:
            analyses = [FlowAnalysisResult.from_dict(a) for a in analysis["analyses"]]
            issue = await code_host.create_issue(
                repo,
                f"[Questions] {setup['package_name']}: "
                f"{analysis['question_count']} open question(s)",
                _question_issue_body(setup["package_name"], analyses, marker),
                labels=[QUESTION_LABEL],
            )
        else:
            logger.info("Run %s: reusing question issue #%d", ctx.run.id, issue.number)
        await UploadRepository(ctx.session).set_issue_number(ctx.run.upload_id, issue.number)
        return {"issue_number": issue.number, "issue_url": issue.html_url}

    async def notify_question_request(self, ctx: StepContext) -> dict[str, Any]:
        setup = ctx.result(SETUP)
        ticket = ctx.result(CREATE_TICKET)
        to = setup.get("owner_email")
        if not to:
            logger.info("Run %s: solution has no owner email; question request not sent", ctx.run.id)
            return {"sent": False}
        await self._notifier.send_question_request(
            to,
            setup["package_name"],
            ticket["issue_url"],
            ctx.result(ANALYZE)["question_count"],
            idempotency_key=ctx.key,
        )
        return {"sent": True}

    async def collect_answers(self, ctx: StepContext) -> dict[str, Any]:
        """Read the comments left on the closed question issue."""
        code_host = self._require_code_host()
        repo = ctx.result(ANALYZE)["repo"]["name"]
        comments = await code_host.list_issue_comments(
            repo, ctx.result(CREATE_TICKET)["issue_number"]
        )
        return {
            "answers": [
                {"author": c.author, "body": c.body, "created_at": c.created_at}
                for c in comments
                if c.body.strip()
            ]
        }

    async def generate_spec(self, ctx: StepContext) -> dict[str, Any]:
        """Render the document and store it as a draft with a fresh version number."""
        documents = SpecDocumentRepository(ctx.session)
        existing = await documents.get_by_run(ctx.run.id)
        if existing is not None:
            return {"document_id": existing.id, "version": existing.version_number}
        setup = ctx.result(SETUP)
        analyses = [FlowAnalysisResult.from_dict(a) for a in ctx.result(ANALYZE)["analyses"]]
        version = await SolutionRepository(ctx.session).reserve_next_version(
            setup["solution_id"]
        )
        reason = default_change_reason(version)
        markdown = render_package_spec(
            analyses,
            SpecMetadata(
                solution_name=setup["solution_name"],
                package_name=setup["package_name"],
                version_number=version,
                created_at=utc_now().strftime("%Y-%m-%d %H:%M UTC"),
                package_created_at=setup.get("package_created_at"),
                change_reason=reason,
            ),
        )
        document = await documents.create_draft(
            solution_id=setup["solution_id"],
            upload_id=ctx.run.upload_id,
            workflow_run_id=ctx.run.id,
            version_number=version,
            markdown_content=markdown,
            change_reason=reason,
        )
        logger.info("Run %s: drafted spec v%d (%s)", ctx.run.id, version, document.id)
        return {"document_id": document.id, "version": version}

    async def create_request(self, ctx: StepContext) -> dict[str, Any]:
        """Commit the draft on a branch and open the approval pull request."""
        code_host = self._require_code_host()
        setup = ctx.result(SETUP)
        repo_info = ctx.result(ANALYZE)["repo"]
        repo = repo_info["name"]
        base = repo_info.get("default_branch") or self._config.default_branch

        documents = SpecDocumentRepository(ctx.session)
        document_id = ctx.result(GENERATE_SPEC)["document_id"]
        document = await documents.get_by_id(document_id)
        if document is None:
            raise ResourceNotFoundException("SpecDocument", document_id)
        version = document.version_number
        package_name = setup["package_name"]
        branch = f"spec/v{version}-{ctx.key[:8]}"
        path = f"specs/{slugify(package_name, fallback='package')}/spec-v{version}.md"

        await code_host.create_branch(repo, branch, base)
        current = await code_host.get_file(repo, path, branch)
        if current is not None and current.content == document.markdown_content:
            commit_sha = await code_host.get_latest_commit_sha(repo, path, branch)
        else:
            commit_sha = await code_host.commit_file(
                repo,
                path,
                document.markdown_content,
                f"docs: add spec v{version} for {package_name}",
                branch,
                sha=current.sha if current else None,
            )

        pull_request = await code_host.find_pull_request(repo, branch)
        if pull_request is None:
            ticket = ctx.steps.get(CREATE_TICKET) or {}
            answers = (ctx.steps.get(COLLECT_ANSWERS) or {}).get("answers", [])
            pull_request = await code_host.create_pull_request(
                repo,
                f"[Spec] {package_name} v{version}",
                _pull_request_body(package_name, version, path, ticket.get("issue_url"), answers),
                branch,
                base,
            )
        else:
            logger.info("Run %s: reusing pull request #%d", ctx.run.id, pull_request.number)

        await UploadRepository(ctx.session).set_pr_number(ctx.run.upload_id, pull_request.number)
        await documents.set_pull_request(document.id, pull_request.number, commit_sha)
        return {
            "branch": branch,
            "path": path,
            "commit_sha": commit_sha,
            "pr_number": pull_request.number,
            "pr_url": pull_request.html_url,
            "merged": pull_request.merged,
        }

    async def notify_approval_request(self, ctx: StepContext) -> dict[str, Any]:
        setup = ctx.result(SETUP)
        to = setup.get("owner_email")
        if not to:
            logger.info("Run %s: solution has no owner email; approval request not sent", ctx.run.id)
            return {"sent": False}
        request = ctx.result(CREATE_REQUEST)
        await self._notifier.send_approval_request(
            to,
            setup["package_name"],
            request["pr_url"],
            ctx.result(GENERATE_SPEC)["version"],
            idempotency_key=ctx.key,
        )
        return {"sent": True}

    async def finalize(self, ctx: StepContext) -> dict[str, Any]:
        """Make the draft the solution's current document."""
        merge = ctx.waits.get(WAIT_FOR_REQUEST_MERGE) or {}
        request = ctx.result(CREATE_REQUEST)
        now = utc_now()
        document = await SpecDocumentRepository(ctx.session).promote_to_current(
            ctx.result(GENERATE_SPEC)["document_id"],
            approved_at=now,
            approved_by=merge.get("merged_by"),
            commit_sha=merge.get("merge_commit_sha") or request.get("commit_sha"),
        )
        logger.info(
            "Run %s: spec v%d is now current for solution %s",
            ctx.run.id,
            document.version_number,
            document.solution_id,
        )
        return {
            "document_id": document.id,
            "version": document.version_number,
            "approved_by": document.approved_by,
            "commit_sha": document.github_commit_sha,
        }

    async def notify_completion(self, ctx: StepContext) -> dict[str, Any]:
        """Email the owner; the run is finished once this step commits."""
        ctx.run.completed_at = utc_now()
        setup = ctx.result(SETUP)
        to = setup.get("owner_email")
        if not to:
            return {"sent": False}
        await self._notifier.send_completion(
            to,
            setup["package_name"],
            ctx.result(FINALIZE)["version"],
            ctx.result(ANALYZE)["repo"]["html_url"],
            idempotency_key=ctx.key,
        )
        return {"sent": True}
