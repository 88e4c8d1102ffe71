"""GitHub API client and pull request creation.

This module provides a wrapper around the GitHub API for:
- Fetching issues and listing open issues
- Committing files to a branch
- Creating and labelling pull requests
- Creating comments on issues

Includes rate limiting and retry logic for API resilience.
"""

from issue_resolver.github.client import (
    GitHubAPIError,
    GitHubClient,
    RateLimitError,
    parse_issue_url,
)
from issue_resolver.github.models import PRCreateRequest, PRCreateResult
from issue_resolver.github.pr_creator import PullRequestCreator, PullRequestError

__all__ = [
    "GitHubAPIError",
    "GitHubClient",
    "PRCreateRequest",
    "PRCreateResult",
    "PullRequestCreator",
    "PullRequestError",
    "RateLimitError",
    "parse_issue_url",
]
