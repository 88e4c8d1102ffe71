"""Single-issue resolution pipeline.

Drives one issue through the fixed stage sequence:
fetch → task_setup → code_generation → commit_and_pr → feedback → done.

Each stage invokes exactly one injected collaborator and consumes the
output of the previous stage. The first failing stage halts the run: the
remaining stages are skipped, nothing is rolled back, and the failure is
reported in the returned ResolutionResult. Retries, if any, belong to the
collaborators.

Source:
- issue_resolver/pipeline/contracts.py (collaborator Protocols)
- issue_resolver/pipeline/models.py (PipelineStage, StageOutcome)
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from issue_resolver.pipeline.contracts import (
    CodeGenerationResult,
    CodeGenerationService,
    FeedbackService,
    IssueData,
    IssueSource,
    PullRequestResult,
    PullRequestService,
    TaskConfig,
    TaskSetup,
)
from issue_resolver.pipeline.models import (
    PIPELINE_STAGES,
    PipelineStage,
    ResolutionResult,
    StageOutcome,
    is_valid_transition,
)
from issue_resolver.trigger.models import IssueReference


logger = structlog.get_logger(__name__)


class InvalidTransitionError(Exception):
    """Raised when the pipeline attempts a transition not in VALID_TRANSITIONS."""

    def __init__(self, from_stage: PipelineStage, to_stage: PipelineStage):
        self.from_stage = from_stage
        self.to_stage = to_stage
        super().__init__(
            f"Invalid transition from {from_stage.value} to {to_stage.value}"
        )


@dataclass
class PipelineRun:
    """Mutable per-issue state accumulated while the stages run."""

    issue: IssueReference
    stage: PipelineStage = PipelineStage.FETCH
    issue_data: Optional[IssueData] = None
    task: Optional[TaskConfig] = None
    code_result: Optional[CodeGenerationResult] = None
    pr_result: Optional[PullRequestResult] = None
    visualization: Optional[Dict[str, Any]] = None

    def advance(self, to_stage: PipelineStage) -> None:
        if not is_valid_transition(self.stage, to_stage):
            raise InvalidTransitionError(self.stage, to_stage)
        self.stage = to_stage


class ResolutionPipeline:
    """Orchestrates the issue-to-PR pipeline for one issue.

    Attributes:
        issue_source: Fetches issue data.
        task_setup: Prepares the code generation task.
        code_generator: Generates and validates code changes.
        pr_creator: Commits changes and opens the pull request.
        feedback: Posts feedback and renders the visualization.
    """

    def __init__(
        self,
        issue_source: IssueSource,
        task_setup: TaskSetup,
        code_generator: CodeGenerationService,
        pr_creator: PullRequestService,
        feedback: FeedbackService,
    ):
        self.issue_source = issue_source
        self.task_setup = task_setup
        self.code_generator = code_generator
        self.pr_creator = pr_creator
        self.feedback = feedback

        self._handlers: Dict[PipelineStage, Callable[[PipelineRun], Awaitable[Any]]] = {
            PipelineStage.FETCH: self._fetch,
            PipelineStage.TASK_SETUP: self._setup_task,
            PipelineStage.CODE_GENERATION: self._generate_code,
            PipelineStage.COMMIT_AND_PR: self._create_pull_request,
            PipelineStage.FEEDBACK: self._provide_feedback,
        }

    async def resolve(self, issue: IssueReference) -> ResolutionResult:
        """Run every stage for ``issue`` and assemble the result.

        Never raises for stage failures; they are reported in the result.
        """
        log = logger.bind(issue_url=issue.issue_url, issue_id=issue.issue_id)
        log.info("Starting resolution process")

        run = PipelineRun(issue=issue)

        for index, stage in enumerate(PIPELINE_STAGES):
            outcome = await self._run_stage(run, stage)
            if not outcome.is_ok:
                run.advance(PipelineStage.FAILED)
                log.error(
                    "Pipeline stage failed",
                    stage=stage.value,
                    error=outcome.error.message,
                    exc_info=outcome.error.cause,
                )
                return self._failure_result(run, outcome)

            next_stage = (
                PIPELINE_STAGES[index + 1]
                if index + 1 < len(PIPELINE_STAGES)
                else PipelineStage.DONE
            )
            run.advance(next_stage)

        result = self._success_result(run)
        log.info(
            "Resolution completed",
            pull_request_url=result.pull_request_url,
            changed_files=result.changed_files,
        )
        return result

    async def _run_stage(self, run: PipelineRun, stage: PipelineStage) -> StageOutcome:
        """Execute one stage, converting any exception into an Err outcome."""
        logger.debug("Running pipeline stage", stage=stage.value, issue_id=run.issue.issue_id)
        try:
            output = await self._handlers[stage](run)
        except Exception as e:
            return StageOutcome.err(stage, e)
        return StageOutcome.ok(stage, output)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _fetch(self, run: PipelineRun) -> IssueData:
        run.issue_data = await self.issue_source.fetch_issue_data(run.issue.issue_url)
        logger.debug("Fetched issue data", issue_number=run.issue_data.number)
        return run.issue_data

    async def _setup_task(self, run: PipelineRun) -> TaskConfig:
        run.task = await self.task_setup.setup_task(run.issue_data)
        logger.debug("Task setup completed", issue_number=run.issue_data.number)
        return run.task

    async def _generate_code(self, run: PipelineRun) -> CodeGenerationResult:
        run.code_result = await self.code_generator.generate_and_validate_code(run.task)
        logger.info(
            "Generated code changes",
            issue_number=run.issue_data.number,
            change_count=len(run.code_result.code_changes),
        )
        return run.code_result

    async def _create_pull_request(self, run: PipelineRun) -> PullRequestResult:
        run.pr_result = await self.pr_creator.create_pull_request(
            run.code_result, run.issue_data
        )
        logger.info(
            "Created pull request",
            issue_number=run.issue_data.number,
            pull_request_url=run.pr_result.pull_request_url,
        )
        return run.pr_result

    async def _provide_feedback(self, run: PipelineRun) -> Dict[str, Any]:
        await self.feedback.provide_feedback(run.pr_result, run.issue_data)
        logger.debug("Feedback provided to issue", issue_number=run.issue_data.number)
        run.visualization = self.feedback.create_visualization(
            run.pr_result, run.issue_data, run.code_result
        )
        return run.visualization

    # ------------------------------------------------------------------
    # Result assembly
    # ------------------------------------------------------------------

    def _success_result(self, run: PipelineRun) -> ResolutionResult:
        return ResolutionResult(
            success=True,
            issue_url=run.issue.issue_url,
            issue_number=run.issue_data.number,
            pull_request_url=run.pr_result.pull_request_url,
            pull_request_number=run.pr_result.pull_request_number,
            branch=run.pr_result.branch,
            changed_files=len(run.code_result.code_changes),
            visualization=run.visualization,
        )

    def _failure_result(self, run: PipelineRun, outcome: StageOutcome) -> ResolutionResult:
        issue_number = (
            run.issue_data.number if run.issue_data is not None else run.issue.issue_number
        )
        return ResolutionResult.failure(
            issue_url=run.issue.issue_url,
            error=outcome.error.message,
            issue_number=issue_number,
            failed_stage=outcome.stage,
        )
