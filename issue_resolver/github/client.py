"""GitHub API client for issue and pull request interactions.

This module provides an async wrapper around the GitHub REST API for:
- Fetching issues and listing the open issues of a repository
- Creating branches and committing file contents
- Creating pull requests and labelling them
- Creating comments on issues

Includes rate limiting and retry logic for API resilience. The client
implements the IssueSource and RepositoryIssueLister contracts of the
resolution pipeline.

Source:
- issue_resolver/github/models.py (PRCreateRequest, PRCreateResult)
- issue_resolver/config/manager.py (token, github section)
"""

import asyncio
import base64
import random
import re
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx
import structlog

from issue_resolver.config.manager import ConfigurationManager
from issue_resolver.github.models import PRCreateRequest, PRCreateResult
from issue_resolver.pipeline.contracts import IssueData
from issue_resolver.trigger.models import IssueReference


logger = structlog.get_logger(__name__)

ISSUE_URL_PATTERN = re.compile(
    r"^https?://github\.com/([^/\s]+)/([^/\s]+)/issues/(\d+)/?$"
)

# GitHub caps list endpoints at 100 items per page.
MAX_PAGE_SIZE = 100


class GitHubAPIError(Exception):
    """A GitHub call returned an error status or never got a response.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class RateLimitError(GitHubAPIError):
    """The token's request quota is used up (403 with no remaining calls, or 429).

    Attributes:
        reset_at: Unix timestamp when the rate limit resets.
        retry_after: Seconds to wait before retrying.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


def parse_issue_url(issue_url: str) -> Tuple[str, str, int]:
    """Split an issue URL into owner, repository and issue number.

    Raises:
        ValueError: If the URL is not a GitHub issue URL.
    """
    match = ISSUE_URL_PATTERN.match(issue_url.strip())
    if match is None:
        raise ValueError(f"Invalid GitHub issue URL: {issue_url}")
    return match.group(1), match.group(2), int(match.group(3))


class GitHubClient:
    """REST client used by every GitHub-facing collaborator.

    Transient failures (timeouts, connection errors, 408/429/5xx) are retried
    with jittered exponential backoff. An exhausted quota raises
    RateLimitError immediately. ``base_url`` may point at a GitHub
    Enterprise Server API root.

    Attributes:
        token: GitHub API token. Requests are unauthenticated without one.
        base_url: Base URL for GitHub API (default: https://api.github.com).
        max_retries: Maximum number of retry attempts for transient failures.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Maximum delay in seconds between retries.
        timeout: Request timeout in seconds.

    Example:
        >>> client = GitHubClient.from_config(config)
        >>> async with client:
        ...     issue = await client.fetch_issue_data(
        ...         "https://github.com/owner/repo/issues/1"
        ...     )
    """

    # Transient statuses
    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        token: Optional[str],
        base_url: str = "https://api.github.com",
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API. Use this to support
                      GitHub Enterprise Server endpoints.
            max_retries: Maximum number of retry attempts.
            base_delay: Base delay in seconds for exponential backoff.
            max_delay: Maximum delay in seconds between retries.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used by tests.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(
        cls,
        config: ConfigurationManager,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "GitHubClient":
        """Build a client from the ``github`` section and the token variable."""
        settings = config.github_settings()
        return cls(
            token=config.get_github_token(),
            base_url=settings.api_base_url,
            max_retries=settings.max_retries,
            timeout=settings.timeout / 1000.0,
            transport=transport,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "issue-resolver/1.0",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff with full jitter.

        Args:
            attempt: The current retry attempt (0-indexed).

        Returns:
            Delay in seconds before the next retry.
        """
        exponential_delay = self.base_delay * (2 ** attempt)
        capped_delay = min(exponential_delay, self.max_delay)
        return random.uniform(0, capped_delay)

    @staticmethod
    def _parse_int_header(headers: httpx.Headers, name: str) -> Optional[int]:
        value = headers.get(name)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                return None
        return None

    def _raise_rate_limit(self, response: httpx.Response) -> None:
        """Raise RateLimitError with the reset information from ``response``."""
        reset_at = self._parse_int_header(response.headers, "x-ratelimit-reset")

        retry_after = None
        if reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        retry_after_header = self._parse_int_header(response.headers, "retry-after")
        if retry_after_header is not None:
            retry_after = retry_after_header

        logger.warning(
            "GitHub API rate limit exceeded",
            reset_at=reset_at,
            retry_after=retry_after,
            limit=self._parse_int_header(response.headers, "x-ratelimit-limit"),
            used=self._parse_int_header(response.headers, "x-ratelimit-used"),
        )

        raise RateLimitError(
            message="GitHub API rate limit exceeded",
            status_code=response.status_code,
            reset_at=reset_at,
            retry_after=retry_after,
            request_url=str(response.url),
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, PATCH).
            path: API path (e.g., /repos/owner/repo/issues/1/comments).
            json_data: Optional JSON body for the request.
            params: Optional query parameters.

        Returns:
            The HTTP response from GitHub.

        Raises:
            GitHubAPIError: If the request fails after all retries.
            RateLimitError: If rate limit is exceeded.
        """
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(
                    method=method,
                    url=path,
                    json=json_data,
                    params=params,
                )
            except httpx.TimeoutException as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = self._calculate_backoff(attempt)
                    logger.warning(
                        "Request timeout, retrying",
                        attempt=attempt + 1,
                        max_retries=self.max_retries,
                        delay=delay,
                        path=path,
                    )
                    await asyncio.sleep(delay)
                continue
            except httpx.RequestError as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = self._calculate_backoff(attempt)
                    logger.warning(
                        "Request error, retrying",
                        error=str(e),
                        attempt=attempt + 1,
                        max_retries=self.max_retries,
                        delay=delay,
                        path=path,
                    )
                    await asyncio.sleep(delay)
                continue

            if response.status_code == 403:
                remaining = self._parse_int_header(
                    response.headers, "x-ratelimit-remaining"
                )
                if remaining == 0:
                    self._raise_rate_limit(response)

            if response.status_code == 429:
                self._raise_rate_limit(response)

            if (
                response.status_code in self.RETRYABLE_STATUS_CODES
                and attempt < self.max_retries
            ):
                delay = self._calculate_backoff(attempt)
                logger.warning(
                    "Retryable error from GitHub API",
                    status_code=response.status_code,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    delay=delay,
                    path=path,
                )
                await asyncio.sleep(delay)
                continue

            if response.status_code >= 400:
                error_body = response.text
                logger.error(
                    "GitHub API error",
                    status_code=response.status_code,
                    path=path,
                    method=method,
                    response_body=error_body[:500],
                )
                raise GitHubAPIError(
                    message=f"GitHub API error: {response.status_code}",
                    status_code=response.status_code,
                    response_body=error_body,
                    request_url=str(response.url),
                )

            return response

        logger.error(
            "GitHub API request failed after all retries",
            path=path,
            method=method,
            max_retries=self.max_retries,
            last_error=str(last_exception),
        )
        raise GitHubAPIError(
            message=f"Request failed after {self.max_retries} retries: {last_exception}",
            request_url=f"{self.base_url}{path}",
        )

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    async def get_issue(self, owner: str, repo: str, issue_number: int) -> Dict[str, Any]:
        """Get raw issue details."""
        path = f"/repos/{owner}/{repo}/issues/{issue_number}"
        logger.debug(
            "Getting issue details", owner=owner, repo=repo, issue_number=issue_number
        )
        response = await self._request(method="GET", path=path)
        return response.json()

    async def fetch_issue_data(self, issue_url: str) -> IssueData:
        """Fetch an issue by URL.

        Raises:
            ValueError: If ``issue_url`` is not a GitHub issue URL.
            GitHubAPIError: If the request fails.
        """
        owner, repo, issue_number = parse_issue_url(issue_url)
        data = await self.get_issue(owner, repo, issue_number)

        labels = [
            label["name"] if isinstance(label, dict) else str(label)
            for label in data.get("labels") or []
        ]
        issue = IssueData(
            number=data.get("number", issue_number),
            title=data.get("title") or "",
            body=data.get("body") or "",
            labels=labels,
            state=data.get("state") or "open",
            html_url=data.get("html_url") or issue_url,
            owner=owner,
            repo=repo,
        )
        logger.info(
            "Fetched issue",
            owner=owner,
            repo=repo,
            issue_number=issue.number,
            label_count=len(labels),
        )
        return issue

    async def list_open_issues(
        self, owner: str, repo: str, limit: int
    ) -> List[IssueReference]:
        """List up to ``limit`` open issues, oldest first, skipping pull requests."""
        path = f"/repos/{owner}/{repo}/issues"
        issues: List[IssueReference] = []
        page = 1

        while len(issues) < limit:
            response = await self._request(
                method="GET",
                path=path,
                params={
                    "state": "open",
                    "sort": "created",
                    "direction": "asc",
                    "per_page": MAX_PAGE_SIZE,
                    "page": page,
                },
            )
            items = response.json()
            if not items:
                break

            for item in items:
                # The issues endpoint also returns pull requests.
                if "pull_request" in item:
                    continue
                issues.append(
                    IssueReference(
                        owner=owner,
                        repo=repo,
                        issue_number=item["number"],
                        issue_url=item.get("html_url")
                        or f"https://github.com/{owner}/{repo}/issues/{item['number']}",
                    )
                )
                if len(issues) >= limit:
                    break

            if len(items) < MAX_PAGE_SIZE:
                break
            page += 1

        logger.info(
            "Listed open issues", owner=owner, repo=repo, issue_count=len(issues)
        )
        return issues

    async def create_comment(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> Dict[str, Any]:
        """Create a comment on an issue.

        Returns:
            The created comment data from GitHub API.
        """
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/comments"

        logger.info(
            "Creating comment on issue",
            owner=owner,
            repo=repo,
            issue_number=issue_number,
            body_length=len(body),
        )

        response = await self._request(method="POST", path=path, json_data={"body": body})

        result = response.json()
        logger.info(
            "Comment created successfully",
            owner=owner,
            repo=repo,
            issue_number=issue_number,
            comment_id=result.get("id"),
        )
        return result

    # ------------------------------------------------------------------
    # Repository contents
    # ------------------------------------------------------------------

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        response = await self._request(method="GET", path=f"/repos/{owner}/{repo}")
        return response.json()

    async def get_branch_sha(self, owner: str, repo: str, branch: str) -> str:
        """Return the commit SHA at the head of ``branch``."""
        response = await self._request(
            method="GET", path=f"/repos/{owner}/{repo}/git/ref/heads/{branch}"
        )
        return response.json()["object"]["sha"]

    async def create_branch(self, owner: str, repo: str, branch: str, sha: str) -> None:
        """Create ``branch`` pointing at ``sha``."""
        logger.info("Creating branch", owner=owner, repo=repo, branch=branch)
        await self._request(
            method="POST",
            path=f"/repos/{owner}/{repo}/git/refs",
            json_data={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    async def get_file_sha(
        self, owner: str, repo: str, path: str, ref: str
    ) -> Optional[str]:
        """Return the blob SHA of ``path`` on ``ref``, or None if it does not exist."""
        try:
            response = await self._request(
                method="GET",
                path=f"/repos/{owner}/{repo}/contents/{path}",
                params={"ref": ref},
            )
        except GitHubAPIError as e:
            if e.status_code == 404:
                return None
            raise
        data = response.json()
        return data.get("sha") if isinstance(data, dict) else None

    async def put_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create or update one file on ``branch`` as a single commit."""
        payload: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if sha:
            payload["sha"] = sha

        logger.debug("Committing file", owner=owner, repo=repo, path=path, branch=branch)
        response = await self._request(
            method="PUT",
            path=f"/repos/{owner}/{repo}/contents/{path}",
            json_data=payload,
        )
        return response.json()

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    async def create_pr(
        self, owner: str, repo: str, request: PRCreateRequest
    ) -> PRCreateResult:
        """Create a pull request and apply its labels.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"/repos/{owner}/{repo}/pulls"

        logger.info(
            "Creating pull request",
            owner=owner,
            repo=repo,
            title=request.title,
            head=request.head_branch,
            base=request.base_branch,
            draft=request.draft,
        )

        response = await self._request(
            method="POST",
            path=path,
            json_data={
                "title": request.title,
                "body": request.body,
                "head": request.head_branch,
                "base": request.base_branch,
                "draft": request.draft,
            },
        )

        result = PRCreateResult.from_github_response(response.json())

        logger.info(
            "Pull request created successfully",
            owner=owner,
            repo=repo,
            pr_number=result.pr_number,
            pr_url=result.pr_url,
        )

        if request.labels:
            await self._add_pr_labels(owner, repo, result.pr_number, request.labels)

        return result

    async def _add_pr_labels(
        self, owner: str, repo: str, pr_number: int, labels: List[str]
    ) -> None:
        """Add labels to a pull request.

        PRs use the issues API for labels since PRs are a type of issue.
        """
        path = f"/repos/{owner}/{repo}/issues/{pr_number}/labels"
        await self._request(method="POST", path=path, json_data={"labels": labels})
        logger.info(
            "Labels added to pull request",
            owner=owner,
            repo=repo,
            pr_number=pr_number,
            labels=labels,
        )

    async def health_check(self) -> bool:
        """Check if the GitHub API is reachable."""
        try:
            response = await self.client.get("/rate_limit")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("GitHub API health check failed", error=str(e))
            return False
