"""Resolution pipeline: single-issue orchestration and batch scheduling."""

from issue_resolver.pipeline.batch import BatchScheduler
from issue_resolver.pipeline.contracts import (
    CodeGenerationResult,
    CodeGenerationService,
    FeedbackAck,
    FeedbackService,
    FileChange,
    IssueData,
    IssueSource,
    PullRequestResult,
    PullRequestService,
    RepositoryIssueLister,
    TaskConfig,
    TaskSetup,
)
from issue_resolver.pipeline.models import (
    PIPELINE_STAGES,
    VALID_TRANSITIONS,
    BatchOutcome,
    PipelineStage,
    ResolutionResult,
    StageError,
    StageOutcome,
    is_terminal_stage,
    is_valid_transition,
)
from issue_resolver.pipeline.orchestrator import (
    InvalidTransitionError,
    PipelineRun,
    ResolutionPipeline,
)

__all__ = [
    # Orchestration
    "BatchScheduler",
    "InvalidTransitionError",
    "PipelineRun",
    "ResolutionPipeline",
    # Contracts
    "CodeGenerationResult",
    "CodeGenerationService",
    "FeedbackAck",
    "FeedbackService",
    "FileChange",
    "IssueData",
    "IssueSource",
    "PullRequestResult",
    "PullRequestService",
    "RepositoryIssueLister",
    "TaskConfig",
    "TaskSetup",
    # Models
    "PIPELINE_STAGES",
    "VALID_TRANSITIONS",
    "BatchOutcome",
    "PipelineStage",
    "ResolutionResult",
    "StageError",
    "StageOutcome",
    "is_terminal_stage",
    "is_valid_transition",
]
