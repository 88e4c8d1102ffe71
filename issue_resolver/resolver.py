"""Entry coordinator for issue resolution requests.

IssueResolver is the single entry point used by the HTTP surface and by
library callers. It initializes configuration once, classifies the input
with the TriggerDetector and dispatches the request to the resolution
pipeline (single issue) or the BatchScheduler (batch and repository-wide
requests). Every outcome is returned as a plain dict envelope; no
exception escapes ``handle_invocation``.

Source:
- issue_resolver/trigger/detector.py (TriggerDetector)
- issue_resolver/pipeline/orchestrator.py (ResolutionPipeline)
- issue_resolver/pipeline/batch.py (BatchScheduler)
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import structlog

from issue_resolver import __version__
from issue_resolver.config.manager import ConfigurationManager
from issue_resolver.feedback.renderer import FeedbackRenderer
from issue_resolver.generation.agent import CodeGenerator
from issue_resolver.generation.task import TaskPreparer
from issue_resolver.github.client import GitHubClient
from issue_resolver.github.pr_creator import PullRequestCreator
from issue_resolver.logging_config import configure_logging
from issue_resolver.pipeline.batch import BatchScheduler
from issue_resolver.pipeline.contracts import (
    CodeGenerationService,
    FeedbackService,
    IssueSource,
    PullRequestService,
    RepositoryIssueLister,
    TaskSetup,
)
from issue_resolver.pipeline.models import BatchOutcome, ResolutionResult
from issue_resolver.pipeline.orchestrator import ResolutionPipeline
from issue_resolver.trigger.detector import DetectionStatus, TriggerDetector
from issue_resolver.trigger.models import (
    BatchRequest,
    IssueReference,
    RepoWideRequest,
    SingleIssueRequest,
)


logger = structlog.get_logger(__name__)

SERVICE_DISPLAY_NAME = "Issue Resolver"

INIT_FAILED_MESSAGE = "Failed to initialize issue resolver"
NO_TRIGGER_MESSAGE = "No valid GitHub issue detected in the input"
INVALID_TRIGGER_MESSAGE = "Invalid trigger data, missing required information"


@dataclass
class Collaborators:
    """The services the pipeline stages call, one per stage plus the lister."""

    issue_source: IssueSource
    issue_lister: RepositoryIssueLister
    task_setup: TaskSetup
    code_generator: CodeGenerationService
    pr_creator: PullRequestService
    feedback: FeedbackService


def build_default_collaborators(
    config: ConfigurationManager, client: GitHubClient
) -> Collaborators:
    """Wire the GitHub- and LLM-backed collaborators around one client."""
    return Collaborators(
        issue_source=client,
        issue_lister=client,
        task_setup=TaskPreparer(config),
        code_generator=CodeGenerator(config),
        pr_creator=PullRequestCreator(client, config),
        feedback=FeedbackRenderer(client),
    )


def _failure(message: str) -> Dict[str, Any]:
    return {"success": False, "message": message}


class IssueResolver:
    """Coordinates detection, dispatch and result assembly.

    Attributes:
        config: Process-wide configuration manager.
        config_path: Optional JSON/YAML file merged over the defaults.
        detector: Trigger detector used to classify input.

    Example:
        >>> resolver = IssueResolver()
        >>> await resolver.handle_invocation(
        ...     "Please fix https://github.com/foo/bar/issues/42"
        ... )
        {'success': True, 'issueUrl': 'https://github.com/foo/bar/issues/42', ...}
    """

    def __init__(
        self,
        config: Optional[ConfigurationManager] = None,
        collaborators: Optional[Collaborators] = None,
        config_path: Optional[Union[str, Path]] = None,
        detector: Optional[TriggerDetector] = None,
    ):
        self.config = config or ConfigurationManager()
        self.config_path = config_path
        self.detector = detector or TriggerDetector()

        self._collaborators = collaborators
        self._github_client: Optional[GitHubClient] = None
        self._pipeline: Optional[ResolutionPipeline] = None
        self._scheduler: Optional[BatchScheduler] = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> bool:
        """Load configuration and wire the pipeline. Safe to call repeatedly.

        Returns:
            True on success, False if configuration or wiring failed.
        """
        async with self._init_lock:
            if self._initialized:
                logger.debug("Issue resolver already initialized")
                return True

            logger.info("Initializing issue resolver", config_path=str(self.config_path or ""))
            try:
                self.config.initialize(self.config_path)
                if self.config.verbose_logging():
                    configure_logging(level="DEBUG")

                if self._collaborators is None:
                    self._github_client = GitHubClient.from_config(self.config)
                    self._collaborators = build_default_collaborators(
                        self.config, self._github_client
                    )

                collaborators = self._collaborators
                self._pipeline = ResolutionPipeline(
                    issue_source=collaborators.issue_source,
                    task_setup=collaborators.task_setup,
                    code_generator=collaborators.code_generator,
                    pr_creator=collaborators.pr_creator,
                    feedback=collaborators.feedback,
                )
                self._scheduler = BatchScheduler(self.config)
            except Exception as e:
                logger.error(
                    "Failed to initialize issue resolver",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return False

            self._initialized = True
            logger.info("Issue resolver initialized successfully")
            return True

    async def _require_initialized(self) -> None:
        if not self._initialized and not await self.initialize():
            raise RuntimeError(INIT_FAILED_MESSAGE)

    async def resolve_issue(self, issue: IssueReference) -> ResolutionResult:
        """Run the pipeline for one issue."""
        await self._require_initialized()
        return await self._pipeline.resolve(issue)

    async def resolve_batch(self, issues: Sequence[IssueReference]) -> List[ResolutionResult]:
        """Run the pipeline for every issue under the batch concurrency limit."""
        await self._require_initialized()
        return await self._scheduler.run(issues, self._pipeline.resolve)

    async def handle_invocation(self, payload: Any) -> Dict[str, Any]:
        """Classify ``payload`` and resolve what it asks for.

        ``payload`` is raw text, a mapping with a ``text`` key, or an object
        with a ``text`` attribute.
        """
        try:
            if not self._initialized and not await self.initialize():
                return _failure(INIT_FAILED_MESSAGE)

            detection = self.detector.detect(payload)
            if detection.status == DetectionStatus.INTERNAL_ERROR:
                logger.warning("Trigger detection failed", reason=detection.reason)
            if not detection.is_detected:
                return _failure(NO_TRIGGER_MESSAGE)

            request = detection.request
            if not self.detector.validate(request):
                return _failure(INVALID_TRIGGER_MESSAGE)

            if isinstance(request, BatchRequest):
                return await self._handle_batch(list(request.issue_list))

            if isinstance(request, RepoWideRequest):
                return await self._handle_repository(request)

            logger.info("Processing single issue resolution request")
            result = await self.resolve_issue(_as_reference(request))
            return result.to_dict()
        except Exception as e:
            logger.error(
                "Error handling invocation",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return _failure(f"Error: {e}")

    async def _handle_batch(self, issues: List[IssueReference]) -> Dict[str, Any]:
        limit = self.config.batch_settings().max_issues_per_batch
        if len(issues) > limit:
            logger.warning("Batch exceeds issue limit", issue_count=len(issues), limit=limit)
            return _failure(
                f"Batch contains {len(issues)} issues, exceeding the limit of {limit}"
            )

        logger.info("Processing batch request", issue_count=len(issues))
        results = await self.resolve_batch(issues)
        return {"success": True, **BatchOutcome(results=results).to_dict()}

    async def _handle_repository(self, request: RepoWideRequest) -> Dict[str, Any]:
        limit = self.config.batch_settings().max_issues_per_batch
        logger.info(
            "Processing repository-wide request",
            repository=request.full_repository,
            limit=limit,
        )
        issues = await self._collaborators.issue_lister.list_open_issues(
            request.owner, request.repo, limit
        )
        results = await self.resolve_batch(issues[:limit])
        return {"success": True, **BatchOutcome(results=results).to_dict()}

    def get_info(self) -> Dict[str, Any]:
        return {
            "name": SERVICE_DISPLAY_NAME,
            "version": __version__,
            "description": "AI-driven GitHub issue resolution system",
            "initialized": self._initialized,
            "capabilities": [
                "GitHub issue resolution",
                "Code generation and validation",
                "Pull request creation",
                "Batch processing",
                "Repository-wide resolution",
            ],
        }

    async def close(self) -> None:
        """Release the GitHub client created during initialization."""
        if self._github_client is not None:
            await self._github_client.close()
            self._github_client = None


def _as_reference(request: Union[SingleIssueRequest, IssueReference]) -> IssueReference:
    if isinstance(request, SingleIssueRequest):
        return request.to_reference()
    return request
