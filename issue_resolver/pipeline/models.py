"""Resolution pipeline models.

This module defines:
- PipelineStage: the stages a single issue moves through
- VALID_TRANSITIONS: the allowed stage transitions
- StageError / StageOutcome: typed per-stage results
- ResolutionResult: the per-issue outcome returned to callers
- BatchOutcome: the envelope for a batch run

Stage flow:
    fetch → task_setup → code_generation → commit_and_pr → feedback → done

Any non-terminal stage can transition to failed. There are no retries and
no transitions out of done or failed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PipelineStage(str, Enum):
    """Stages of the single-issue resolution pipeline.

    Attributes:
        FETCH: Fetching the issue from GitHub.
        TASK_SETUP: Preparing the code generation task.
        CODE_GENERATION: Generating and validating the fix.
        COMMIT_AND_PR: Committing changes and opening the pull request.
        FEEDBACK: Commenting on the issue and rendering the visualization.
        DONE: Pipeline finished successfully.
        FAILED: A stage failed; remaining stages were skipped.
    """

    FETCH = "fetch"
    TASK_SETUP = "task_setup"
    CODE_GENERATION = "code_generation"
    COMMIT_AND_PR = "commit_and_pr"
    FEEDBACK = "feedback"
    DONE = "done"
    FAILED = "failed"


# Stages executed in order by the orchestrator.
PIPELINE_STAGES: List[PipelineStage] = [
    PipelineStage.FETCH,
    PipelineStage.TASK_SETUP,
    PipelineStage.CODE_GENERATION,
    PipelineStage.COMMIT_AND_PR,
    PipelineStage.FEEDBACK,
]

VALID_TRANSITIONS: Dict[PipelineStage, List[PipelineStage]] = {
    PipelineStage.FETCH: [PipelineStage.TASK_SETUP, PipelineStage.FAILED],
    PipelineStage.TASK_SETUP: [PipelineStage.CODE_GENERATION, PipelineStage.FAILED],
    PipelineStage.CODE_GENERATION: [PipelineStage.COMMIT_AND_PR, PipelineStage.FAILED],
    PipelineStage.COMMIT_AND_PR: [PipelineStage.FEEDBACK, PipelineStage.FAILED],
    PipelineStage.FEEDBACK: [PipelineStage.DONE, PipelineStage.FAILED],
    PipelineStage.DONE: [],
    PipelineStage.FAILED: [],
}


def is_valid_transition(from_stage: PipelineStage, to_stage: PipelineStage) -> bool:
    """Check if a stage transition is allowed.

    Example:
        >>> is_valid_transition(PipelineStage.FETCH, PipelineStage.TASK_SETUP)
        True
        >>> is_valid_transition(PipelineStage.FETCH, PipelineStage.FEEDBACK)
        False
    """
    return to_stage in VALID_TRANSITIONS.get(from_stage, [])


def is_terminal_stage(stage: PipelineStage) -> bool:
    """Check if a stage has no outgoing transitions."""
    return len(VALID_TRANSITIONS.get(stage, [])) == 0


class StageError(Exception):
    """Raised when a pipeline stage fails.

    Attributes:
        stage: The stage that failed.
        cause: The underlying exception.
        message: Human-readable error message from the cause.
    """

    def __init__(self, stage: PipelineStage, cause: BaseException):
        self.stage = stage
        self.cause = cause
        self.message = str(cause) or type(cause).__name__
        super().__init__(f"{stage.value}: {self.message}")


@dataclass(frozen=True)
class StageOutcome:
    """Typed result of running one stage: Ok(output) or Err(stage, error)."""

    stage: PipelineStage
    output: Any = None
    error: Optional[StageError] = None

    @classmethod
    def ok(cls, stage: PipelineStage, output: Any) -> "StageOutcome":
        return cls(stage=stage, output=output)

    @classmethod
    def err(cls, stage: PipelineStage, cause: BaseException) -> "StageOutcome":
        return cls(stage=stage, error=StageError(stage, cause))

    @property
    def is_ok(self) -> bool:
        return self.error is None


class ResolutionResult(BaseModel):
    """Outcome of resolving one issue.

    On failure only the fields known before the failing stage are set,
    together with ``error`` and ``failed_stage``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool
    issue_url: str = Field(alias="issueUrl")
    issue_number: Optional[int] = Field(default=None, alias="issueNumber")
    pull_request_url: Optional[str] = Field(default=None, alias="pullRequestUrl")
    pull_request_number: Optional[int] = Field(
        default=None, alias="pullRequestNumber"
    )
    branch: Optional[str] = None
    changed_files: Optional[int] = Field(default=None, alias="changedFiles")
    visualization: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    failed_stage: Optional[PipelineStage] = Field(default=None, alias="failedStage")

    @classmethod
    def failure(
        cls,
        issue_url: str,
        error: str,
        issue_number: Optional[int] = None,
        failed_stage: Optional[PipelineStage] = None,
    ) -> "ResolutionResult":
        return cls(
            success=False,
            issue_url=issue_url,
            issue_number=issue_number,
            error=error,
            failed_stage=failed_stage,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, omitting unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BatchOutcome(BaseModel):
    """Results of one batch run, index-aligned with the input issues."""

    is_batch: bool = Field(default=True, alias="isBatch")
    results: List[ResolutionResult] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isBatch": self.is_batch,
            "results": [result.to_dict() for result in self.results],
        }
