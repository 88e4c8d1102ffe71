"""Collaborator contracts consumed by the resolution pipeline.

Each pipeline stage invokes exactly one collaborator. The collaborators
are described here as Protocols together with the payload models they
exchange, so the pipeline never depends on a concrete GitHub or LLM
implementation.

Stage → collaborator:
- Fetch: IssueSource.fetch_issue_data
- TaskSetup: TaskSetup.setup_task
- CodeGeneration: CodeGenerationService.generate_and_validate_code
- CommitAndPR: PullRequestService.create_pull_request
- Feedback: FeedbackService.provide_feedback / create_visualization
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from issue_resolver.trigger.models import IssueReference


class IssueData(BaseModel):
    """Issue details returned by the issue source.

    Attributes:
        number: Issue number within the repository.
        title: Issue title.
        body: Issue body; empty when the issue has no description.
        labels: Label names attached to the issue.
        state: Issue state ("open" or "closed").
        html_url: Browser URL of the issue.
        owner: Repository owner.
        repo: Repository name.
    """

    model_config = ConfigDict(extra="allow")

    number: int = Field(..., gt=0)
    title: str = ""
    body: str = ""
    labels: List[str] = Field(default_factory=list)
    state: str = "open"
    html_url: str = ""
    owner: str = ""
    repo: str = ""

    @property
    def full_repository(self) -> str:
        return f"{self.owner}/{self.repo}"


class TaskConfig(BaseModel):
    """Task description handed to code generation.

    Attributes:
        issue: The issue being resolved.
        instructions: Natural-language task statement.
        context_snippets: Excerpts from the issue (error output, code
            blocks) ordered by relevance.
        referenced_files: File paths mentioned in the issue.
        model: Model identifier for generation.
        temperature: Sampling temperature.
        max_tokens: Response token budget.
        system_message: System prompt for the model.
    """

    issue: IssueData
    instructions: str
    context_snippets: List[str] = Field(default_factory=list)
    referenced_files: List[str] = Field(default_factory=list)
    model: str
    temperature: float
    max_tokens: int
    system_message: str = ""


class FileChange(BaseModel):
    """Full new content for one file in the repository."""

    path: str = Field(..., min_length=1)
    content: str
    description: str = ""


class CodeGenerationResult(BaseModel):
    """Ordered file changes produced by code generation."""

    code_changes: List[FileChange] = Field(default_factory=list)
    summary: str = ""


class PullRequestResult(BaseModel):
    """Pull request opened for a resolved issue."""

    pull_request_url: str
    pull_request_number: int = Field(..., gt=0)
    branch: str


class FeedbackAck(BaseModel):
    """Acknowledgement that feedback was posted on the issue."""

    comment_id: Optional[int] = None
    comment_url: Optional[str] = None


@runtime_checkable
class IssueSource(Protocol):
    """Fetches issue data by URL."""

    async def fetch_issue_data(self, issue_url: str) -> IssueData:
        ...


@runtime_checkable
class RepositoryIssueLister(Protocol):
    """Lists the open issues of a repository."""

    async def list_open_issues(
        self, owner: str, repo: str, limit: int
    ) -> List[IssueReference]:
        ...


@runtime_checkable
class TaskSetup(Protocol):
    """Turns issue data into a task for code generation."""

    async def setup_task(self, issue_data: IssueData) -> TaskConfig:
        ...


@runtime_checkable
class CodeGenerationService(Protocol):
    """Generates and validates code changes for a task."""

    async def generate_and_validate_code(
        self, task: TaskConfig
    ) -> CodeGenerationResult:
        ...


@runtime_checkable
class PullRequestService(Protocol):
    """Commits code changes and opens a pull request."""

    async def create_pull_request(
        self, code_result: CodeGenerationResult, issue_data: IssueData
    ) -> PullRequestResult:
        ...


@runtime_checkable
class FeedbackService(Protocol):
    """Reports the outcome back to the issue."""

    async def provide_feedback(
        self, pr_result: PullRequestResult, issue_data: IssueData
    ) -> FeedbackAck:
        ...

    def create_visualization(
        self,
        pr_result: PullRequestResult,
        issue_data: IssueData,
        code_result: CodeGenerationResult,
    ) -> Dict[str, Any]:
        ...
