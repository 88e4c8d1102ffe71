"""Resolution request models produced by trigger detection.

A detected trigger is one of three mutually exclusive request shapes,
distinguished by the ``kind`` tag:

- SingleIssueRequest: one issue identified by URL
- BatchRequest: an ordered list of issues
- RepoWideRequest: every open issue of one repository

Requests are immutable once built. Fields carry no constraints;
completeness is checked by ``TriggerDetector.validate``.
"""

from enum import Enum
from typing import Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class RequestKind(str, Enum):
    """Discriminator for the resolution request variants."""

    SINGLE = "single"
    BATCH = "batch"
    REPO_WIDE = "repo_wide"


class IssueReference(BaseModel):
    """One GitHub issue named in a trigger.

    Attributes:
        owner: Repository owner (user or organization).
        repo: Repository name.
        issue_number: Issue number within the repository.
        issue_url: The issue URL as it appeared in the input.
    """

    model_config = ConfigDict(frozen=True)

    owner: str = ""
    repo: str = ""
    issue_number: Optional[int] = None
    issue_url: str = ""

    @property
    def issue_id(self) -> str:
        """Canonical identifier in format "{owner}/{repo}#{number}"."""
        return f"{self.owner}/{self.repo}#{self.issue_number}"


class SingleIssueRequest(IssueReference):
    """Request to resolve exactly one issue."""

    kind: Literal[RequestKind.SINGLE] = RequestKind.SINGLE

    def to_reference(self) -> IssueReference:
        return IssueReference(
            owner=self.owner,
            repo=self.repo,
            issue_number=self.issue_number,
            issue_url=self.issue_url,
        )


class BatchRequest(BaseModel):
    """Request to resolve an ordered list of issues."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[RequestKind.BATCH] = RequestKind.BATCH
    issue_list: Tuple[IssueReference, ...] = Field(default_factory=tuple)


class RepoWideRequest(BaseModel):
    """Request to resolve the open issues of a repository."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[RequestKind.REPO_WIDE] = RequestKind.REPO_WIDE
    owner: str = ""
    repo: str = ""

    @property
    def full_repository(self) -> str:
        return f"{self.owner}/{self.repo}"


TriggerRequest = Union[SingleIssueRequest, BatchRequest, RepoWideRequest]
