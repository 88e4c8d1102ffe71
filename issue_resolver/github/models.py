"""GitHub request and response models."""

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class PRCreateRequest(BaseModel):
    """Pull request creation parameters.

    Attributes:
        title: Pull request title.
        body: Pull request description in markdown.
        head_branch: Branch containing the changes.
        base_branch: Branch the changes are merged into.
        draft: Open the pull request as a draft.
        labels: Labels applied after creation.
    """

    title: str = Field(..., min_length=1)
    body: str = ""
    head_branch: str = Field(..., min_length=1)
    base_branch: str = Field(..., min_length=1)
    draft: bool = False
    labels: List[str] = Field(default_factory=list)


class PRCreateResult(BaseModel):
    """Pull request returned by the GitHub API."""

    pr_number: int = Field(..., gt=0)
    pr_url: str
    head_branch: str = ""

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "PRCreateResult":
        head = data.get("head") or {}
        return cls(
            pr_number=data["number"],
            pr_url=data["html_url"],
            head_branch=head.get("ref", ""),
        )
