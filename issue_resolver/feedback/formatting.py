"""Feedback comment and visualization formatting.

Formats the outcome of a resolution as GitHub-flavored markdown, both for
the comment posted on the issue and for the visualization payload returned
to the caller.

Source:
- issue_resolver/pipeline/contracts.py (IssueData, PullRequestResult,
  CodeGenerationResult)
"""

from typing import List

from issue_resolver.pipeline.contracts import (
    CodeGenerationResult,
    FileChange,
    IssueData,
    PullRequestResult,
)


FEEDBACK_HEADER = """## 🤖 Automated Fix Proposed

I've opened a pull request that attempts to resolve this issue.

"""

FEEDBACK_FOOTER = """
---

*This pull request was generated automatically. Please review the changes carefully before merging.*
"""


def format_feedback_comment(pr_result: PullRequestResult, issue_data: IssueData) -> str:
    """Format the comment posted on the issue after the PR is opened.

    Example:
        >>> comment = format_feedback_comment(pr_result, issue_data)
        >>> print(comment)
        ## 🤖 Automated Fix Proposed
        ...
        **Pull request:** #7 (https://github.com/o/r/pull/7)
        ...
    """
    details = (
        f"**Pull request:** #{pr_result.pull_request_number} "
        f"({pr_result.pull_request_url})\n"
        f"**Branch:** `{pr_result.branch}`\n"
        f"**Issue:** #{issue_data.number}\n"
    )
    return f"{FEEDBACK_HEADER}{details}{FEEDBACK_FOOTER}"


def _format_file_list(changes: List[FileChange]) -> str:
    lines = []
    for change in changes:
        line = f"- `{change.path}`"
        description = _single_line(change.description)
        if description:
            line += f": {description}"
        lines.append(line)
    return "\n".join(lines)


def _single_line(text: str) -> str:
    """Collapse whitespace so text fits on one markdown list line."""
    if not text:
        return ""
    return " ".join(text.split())


def format_visualization_markdown(
    pr_result: PullRequestResult,
    issue_data: IssueData,
    code_result: CodeGenerationResult,
) -> str:
    """Render the resolution summary shown to the caller."""
    title = _single_line(issue_data.title) or "(untitled)"
    sections = [
        f"# Resolution of {issue_data.full_repository}#{issue_data.number}",
        "",
        f"**Issue:** {title}",
        f"**Pull request:** [#{pr_result.pull_request_number}]({pr_result.pull_request_url})",
        f"**Branch:** `{pr_result.branch}`",
        "",
    ]

    if code_result.summary:
        sections.extend(["## Summary", "", code_result.summary.strip(), ""])

    sections.extend(
        [
            f"## Files Changed ({len(code_result.code_changes)})",
            "",
            _format_file_list(code_result.code_changes) or "_No files changed._",
        ]
    )
    return "\n".join(sections)
