"""Pull request creation from generated code changes.

Turns a CodeGenerationResult into a branch, one commit per changed file and
a pull request that references the issue. Title, body, draft flag, labels
and branch naming follow the ``pullRequest`` configuration section.

Source:
- issue_resolver/github/client.py (GitHubClient)
- issue_resolver/config/manager.py (pullRequest and security sections)
"""

from typing import List

import structlog

from issue_resolver.config.manager import ConfigurationManager
from issue_resolver.github.client import GitHubAPIError, GitHubClient
from issue_resolver.github.models import PRCreateRequest
from issue_resolver.pipeline.contracts import (
    CodeGenerationResult,
    FileChange,
    IssueData,
    PullRequestResult,
)


logger = structlog.get_logger(__name__)

MAX_SUMMARY_LENGTH = 2000

REVIEW_CHECKLIST = [
    "Changes address the problem described in the issue",
    "Code follows the project's conventions",
    "Tests cover the new behavior",
    "No secrets or credentials are included",
]


class PullRequestError(Exception):
    """Raised when committing changes or opening the pull request fails."""


def build_branch_name(prefix: str, issue_number: int) -> str:
    """Return the head branch name for an issue, e.g. ``openhands/issue-42``."""
    return f"{prefix}issue-{issue_number}"


def build_pr_title(prefix: str, issue_number: int, issue_title: str) -> str:
    """Build the PR title.

    Example:
        >>> build_pr_title("OpenHands: ", 42, "Crash on start")
        'OpenHands: Fix #42: Crash on start'
    """
    return f"{prefix}Fix #{issue_number}: {issue_title.strip()}"


def build_pr_body(
    issue_data: IssueData,
    code_result: CodeGenerationResult,
    create_check_list: bool,
) -> str:
    """Build the PR description: summary, changed files, checklist, issue link."""
    summary = code_result.summary.strip() or "Automated fix generated for this issue."
    if len(summary) > MAX_SUMMARY_LENGTH:
        summary = summary[:MAX_SUMMARY_LENGTH] + "\n\n... (truncated)"

    sections = [
        "## Summary",
        "",
        summary,
        "",
    ]

    if code_result.code_changes:
        sections.extend(["## Files Changed", ""])
        for change in code_result.code_changes:
            line = f"- `{change.path}`"
            if change.description:
                line += f": {change.description}"
            sections.append(line)
        sections.append("")

    if create_check_list:
        sections.extend(["## Review Checklist", ""])
        sections.extend(f"- [ ] {item}" for item in REVIEW_CHECKLIST)
        sections.append("")

    sections.append(f"Fixes #{issue_data.number}")
    return "\n".join(sections)


def build_commit_message(issue_number: int, change: FileChange) -> str:
    message = f"Fix #{issue_number}: update {change.path}"
    if change.description:
        message += f"\n\n{change.description}"
    return message


class PullRequestCreator:
    """Commits generated changes and opens a pull request.

    Attributes:
        client: GitHub API client.
        config: Configuration manager.
    """

    def __init__(self, client: GitHubClient, config: ConfigurationManager):
        self.client = client
        self.config = config

    def _check_file_types(self, changes: List[FileChange]) -> None:
        if not self.config.security_settings().validate_code_before_commit:
            return
        rejected = [c.path for c in changes if not self.config.is_file_type_allowed(c.path)]
        if rejected:
            raise PullRequestError(f"File type not allowed: {', '.join(rejected)}")

    async def _resolve_base_branch(self, issue_data: IssueData) -> str:
        configured = self.config.pull_request_settings().default_base_branch
        if configured:
            return configured
        repository = await self.client.get_repository(issue_data.owner, issue_data.repo)
        return repository.get("default_branch") or "main"

    async def create_pull_request(
        self, code_result: CodeGenerationResult, issue_data: IssueData
    ) -> PullRequestResult:
        """Create a branch, commit every change and open the pull request.

        Raises:
            PullRequestError: If there is nothing to commit, a file type is
                not allowed, or a GitHub call fails.
        """
        if not code_result.code_changes:
            raise PullRequestError("No code changes to commit")

        self._check_file_types(code_result.code_changes)

        settings = self.config.pull_request_settings()
        owner, repo = issue_data.owner, issue_data.repo
        branch = build_branch_name(settings.branch_prefix, issue_data.number)

        try:
            base_branch = await self._resolve_base_branch(issue_data)
            base_sha = await self.client.get_branch_sha(owner, repo, base_branch)
            await self.client.create_branch(owner, repo, branch, base_sha)

            for change in code_result.code_changes:
                sha = await self.client.get_file_sha(owner, repo, change.path, branch)
                await self.client.put_file(
                    owner,
                    repo,
                    change.path,
                    change.content,
                    message=build_commit_message(issue_data.number, change),
                    branch=branch,
                    sha=sha,
                )

            request = PRCreateRequest(
                title=build_pr_title(settings.title_prefix, issue_data.number, issue_data.title),
                body=build_pr_body(issue_data, code_result, settings.create_check_list),
                head_branch=branch,
                base_branch=base_branch,
                draft=settings.default_as_draft,
                labels=list(settings.add_labels),
            )
            pr = await self.client.create_pr(owner, repo, request)
        except GitHubAPIError as e:
            raise PullRequestError(f"Failed to create pull request: {e.message}") from e

        logger.info(
            "Pull request ready",
            issue_number=issue_data.number,
            pr_number=pr.pr_number,
            branch=branch,
            file_count=len(code_result.code_changes),
        )
        return PullRequestResult(
            pull_request_url=pr.pr_url,
            pull_request_number=pr.pr_number,
            branch=branch,
        )
