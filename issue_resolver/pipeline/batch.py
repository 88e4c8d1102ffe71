"""Concurrency-bounded batch execution of the resolution pipeline.

At most ``batch.maxConcurrent`` pipelines are in flight at any time; the
next issue is admitted as soon as a slot frees. Every issue yields exactly
one ResolutionResult, written to the index of that issue in the input, so
the result list always matches input order regardless of completion order.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence

import structlog

from issue_resolver.config.manager import ConfigurationManager
from issue_resolver.pipeline.models import ResolutionResult
from issue_resolver.trigger.models import IssueReference


logger = structlog.get_logger(__name__)

ResolveFn = Callable[[IssueReference], Awaitable[ResolutionResult]]


class BatchScheduler:
    """Runs one pipeline per issue under a shared concurrency limit.

    Attributes:
        config: Configuration manager supplying ``batch.maxConcurrent``.

    Example:
        >>> scheduler = BatchScheduler(config)
        >>> results = await scheduler.run(issues, pipeline.resolve)
    """

    def __init__(self, config: ConfigurationManager):
        self.config = config

    def max_concurrent(self) -> int:
        return self.config.batch_settings().max_concurrent

    async def run(
        self, issues: Sequence[IssueReference], resolve: ResolveFn
    ) -> List[ResolutionResult]:
        """Resolve ``issues`` concurrently and return results in input order.

        An exception escaping ``resolve`` becomes a failed result for that
        issue only; the other issues are unaffected.
        """
        if not issues:
            return []

        limit = self.max_concurrent()
        semaphore = asyncio.Semaphore(limit)
        results: List[Optional[ResolutionResult]] = [None] * len(issues)

        logger.info(
            "Processing batch of issues",
            issue_count=len(issues),
            max_concurrent=limit,
        )

        async def process(index: int, issue: IssueReference) -> None:
            async with semaphore:
                logger.debug("Processing batch issue", index=index, issue_url=issue.issue_url)
                try:
                    results[index] = await resolve(issue)
                except Exception as e:
                    logger.error(
                        "Error processing issue in batch",
                        issue_url=issue.issue_url,
                        error=str(e),
                        exc_info=True,
                    )
                    results[index] = ResolutionResult.failure(
                        issue_url=issue.issue_url,
                        issue_number=issue.issue_number,
                        error=str(e) or type(e).__name__,
                    )

        await asyncio.gather(
            *(process(index, issue) for index, issue in enumerate(issues))
        )

        succeeded = sum(1 for result in results if result is not None and result.success)
        logger.info(
            "Batch processing completed",
            issue_count=len(issues),
            succeeded=succeeded,
            failed=len(issues) - succeeded,
        )
        return [result for result in results if result is not None]
