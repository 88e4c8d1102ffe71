"""Feedback to the issue and visualization of the result."""

from typing import Any, Dict

import structlog

from issue_resolver.feedback.formatting import (
    format_feedback_comment,
    format_visualization_markdown,
)
from issue_resolver.github.client import GitHubClient
from issue_resolver.pipeline.contracts import (
    CodeGenerationResult,
    FeedbackAck,
    IssueData,
    PullRequestResult,
)


logger = structlog.get_logger(__name__)


class FeedbackRenderer:
    """Posts the resolution outcome on the issue and renders a summary.

    Attributes:
        client: GitHub API client used to post the comment.
    """

    def __init__(self, client: GitHubClient):
        self.client = client

    async def provide_feedback(
        self, pr_result: PullRequestResult, issue_data: IssueData
    ) -> FeedbackAck:
        comment = await self.client.create_comment(
            issue_data.owner,
            issue_data.repo,
            issue_data.number,
            format_feedback_comment(pr_result, issue_data),
        )
        logger.info(
            "Posted feedback comment",
            issue_number=issue_data.number,
            comment_id=comment.get("id"),
        )
        return FeedbackAck(comment_id=comment.get("id"), comment_url=comment.get("html_url"))

    def create_visualization(
        self,
        pr_result: PullRequestResult,
        issue_data: IssueData,
        code_result: CodeGenerationResult,
    ) -> Dict[str, Any]:
        """Build the markdown visualization payload for the caller."""
        return {
            "type": "markdown",
            "content": format_visualization_markdown(pr_result, issue_data, code_result),
            "summary": {
                "issueNumber": issue_data.number,
                "pullRequestNumber": pr_result.pull_request_number,
                "pullRequestUrl": pr_result.pull_request_url,
                "branch": pr_result.branch,
                "changedFiles": [change.path for change in code_result.code_changes],
            },
        }
