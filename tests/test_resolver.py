"""Unit tests for the IssueResolver entry coordinator."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from issue_resolver.config.manager import ConfigurationManager
from issue_resolver.pipeline.contracts import (
    CodeGenerationResult,
    FeedbackAck,
    FileChange,
    IssueData,
    PullRequestResult,
    TaskConfig,
)
from issue_resolver.resolver import (
    INIT_FAILED_MESSAGE,
    INVALID_TRIGGER_MESSAGE,
    NO_TRIGGER_MESSAGE,
    Collaborators,
    IssueResolver,
)
from issue_resolver.trigger.detector import DetectionResult
from issue_resolver.trigger.models import IssueReference, SingleIssueRequest


def run_async(coro):
    return asyncio.run(coro)


def _issue_from_url(issue_url: str) -> IssueData:
    number = int(issue_url.rstrip("/").rsplit("/", 1)[1])
    return IssueData(number=number, title=f"Issue {number}", owner="a", repo="b")


def _make_collaborators(failing_numbers=()) -> Collaborators:
    failing = set(failing_numbers)

    async def fetch(issue_url):
        return _issue_from_url(issue_url)

    async def setup(issue):
        return TaskConfig(
            issue=issue, instructions="fix", model="m", temperature=0.1, max_tokens=500
        )

    async def generate(task):
        if task.issue.number in failing:
            raise RuntimeError(f"generation failed for {task.issue.number}")
        return CodeGenerationResult(
            code_changes=[FileChange(path="a.py", content="x = 1")], summary="s"
        )

    async def create_pr(code_result, issue):
        return PullRequestResult(
            pull_request_url=f"https://github.com/a/b/pull/{issue.number + 100}",
            pull_request_number=issue.number + 100,
            branch=f"openhands/issue-{issue.number}",
        )

    issue_source = MagicMock()
    issue_source.fetch_issue_data = AsyncMock(side_effect=fetch)
    task_setup = MagicMock()
    task_setup.setup_task = AsyncMock(side_effect=setup)
    code_generator = MagicMock()
    code_generator.generate_and_validate_code = AsyncMock(side_effect=generate)
    pr_creator = MagicMock()
    pr_creator.create_pull_request = AsyncMock(side_effect=create_pr)
    feedback = MagicMock()
    feedback.provide_feedback = AsyncMock(return_value=FeedbackAck(comment_id=1))
    feedback.create_visualization.return_value = {"type": "markdown", "content": ""}
    issue_lister = MagicMock()
    issue_lister.list_open_issues = AsyncMock(return_value=[])

    return Collaborators(
        issue_source=issue_source,
        issue_lister=issue_lister,
        task_setup=task_setup,
        code_generator=code_generator,
        pr_creator=pr_creator,
        feedback=feedback,
    )


def _urls(*numbers):
    return " and ".join(f"https://github.com/a/b/issues/{n}" for n in numbers)


@pytest.fixture
def collaborators():
    return _make_collaborators(failing_numbers={2})


@pytest.fixture
def resolver(collaborators):
    return IssueResolver(
        config=ConfigurationManager(env_file=None), collaborators=collaborators
    )


class TestInitialize:
    def test_initialize_is_idempotent(self, resolver):
        assert run_async(resolver.initialize()) is True
        assert run_async(resolver.initialize()) is True
        assert resolver.is_initialized

    def test_concurrent_initialize_loads_config_once(self, collaborators):
        config = ConfigurationManager(env_file=None)
        config.initialize = MagicMock(wraps=config.initialize)
        resolver = IssueResolver(config=config, collaborators=collaborators)

        async def both():
            return await asyncio.gather(resolver.initialize(), resolver.initialize())

        assert run_async(both()) == [True, True]
        config.initialize.assert_called_once()

    def test_invalid_config_file_fails_initialize(self, collaborators, tmp_path):
        path = tmp_path / "resolver.json"
        path.write_text(json.dumps({"ai": {"temperature": 3}}))
        resolver = IssueResolver(
            config=ConfigurationManager(env_file=None),
            collaborators=collaborators,
            config_path=path,
        )

        assert run_async(resolver.initialize()) is False
        assert resolver.is_initialized is False

    def test_invocation_reports_init_failure(self, collaborators, tmp_path):
        resolver = IssueResolver(
            config=ConfigurationManager(env_file=None),
            collaborators=collaborators,
            config_path=tmp_path / "missing.yaml",
        )

        response = run_async(resolver.handle_invocation("https://github.com/a/b/issues/1"))

        assert response == {"success": False, "message": INIT_FAILED_MESSAGE}

    def test_default_collaborators_are_built(self):
        resolver = IssueResolver(config=ConfigurationManager(env_file=None))

        assert run_async(resolver.initialize()) is True
        run_async(resolver.close())


class TestHandleInvocation:
    def test_single_issue(self, resolver):
        response = run_async(
            resolver.handle_invocation("Fix https://github.com/a/b/issues/1 please")
        )

        assert response["success"] is True
        assert response["issueUrl"] == "https://github.com/a/b/issues/1"
        assert response["issueNumber"] == 1
        assert response["pullRequestNumber"] == 101
        assert response["branch"] == "openhands/issue-1"
        assert response["changedFiles"] == 1
        assert "isBatch" not in response

    def test_single_issue_failure(self, resolver):
        response = run_async(
            resolver.handle_invocation({"text": "https://github.com/a/b/issues/2"})
        )

        assert response["success"] is False
        assert response["error"] == "generation failed for 2"
        assert response["failedStage"] == "code_generation"

    def test_no_trigger(self, resolver):
        response = run_async(resolver.handle_invocation("hello"))
        assert response == {"success": False, "message": NO_TRIGGER_MESSAGE}

    def test_empty_input(self, resolver):
        response = run_async(resolver.handle_invocation({"text": ""}))
        assert response == {"success": False, "message": NO_TRIGGER_MESSAGE}

    def test_detector_internal_error_is_no_trigger(self, collaborators):
        detector = MagicMock()
        detector.detect.return_value = DetectionResult.internal_error("RuntimeError: x")
        resolver = IssueResolver(
            config=ConfigurationManager(env_file=None),
            collaborators=collaborators,
            detector=detector,
        )

        response = run_async(resolver.handle_invocation("anything"))

        assert response == {"success": False, "message": NO_TRIGGER_MESSAGE}

    def test_incomplete_trigger(self, collaborators):
        detector = MagicMock()
        detector.detect.return_value = DetectionResult.detected(
            SingleIssueRequest(owner="a", repo="b", issue_url="x")
        )
        detector.validate.return_value = False
        resolver = IssueResolver(
            config=ConfigurationManager(env_file=None),
            collaborators=collaborators,
            detector=detector,
        )

        response = run_async(resolver.handle_invocation("anything"))

        assert response == {"success": False, "message": INVALID_TRIGGER_MESSAGE}

    def test_batch_isolates_failures(self, resolver):
        response = run_async(
            resolver.handle_invocation(f"resolve issues from {_urls(1, 2, 3)}")
        )

        assert response["success"] is True
        assert response["isBatch"] is True
        results = response["results"]
        assert [r["issueNumber"] for r in results] == [1, 2, 3]
        assert [r["success"] for r in results] == [True, False, True]
        assert results[1]["failedStage"] == "code_generation"

    def test_batch_over_limit_is_rejected(self, resolver, collaborators):
        run_async(resolver.initialize())
        resolver.config.update_config("batch.maxIssuesPerBatch", 2)

        response = run_async(
            resolver.handle_invocation(f"resolve issues from {_urls(1, 3, 4)}")
        )

        assert response["success"] is False
        assert "exceeding the limit of 2" in response["message"]
        collaborators.issue_source.fetch_issue_data.assert_not_awaited()

    def test_repository_wide_request(self, resolver, collaborators):
        collaborators.issue_lister.list_open_issues.return_value = [
            IssueReference(
                owner="a", repo="b", issue_number=n,
                issue_url=f"https://github.com/a/b/issues/{n}",
            )
            for n in (5, 6)
        ]

        response = run_async(resolver.handle_invocation("resolve issues in a/b"))

        assert response["success"] is True
        assert response["isBatch"] is True
        assert [r["issueNumber"] for r in response["results"]] == [5, 6]
        collaborators.issue_lister.list_open_issues.assert_awaited_once_with("a", "b", 10)

    def test_repository_without_open_issues(self, resolver):
        response = run_async(resolver.handle_invocation("resolve issues in a/b"))
        assert response == {"success": True, "isBatch": True, "results": []}

    def test_unexpected_error_becomes_message(self, resolver, collaborators):
        collaborators.issue_lister.list_open_issues.side_effect = RuntimeError("offline")

        response = run_async(resolver.handle_invocation("resolve issues in a/b"))

        assert response == {"success": False, "message": "Error: offline"}


class TestDirectApi:
    def test_resolve_issue(self, resolver):
        reference = IssueReference(
            owner="a", repo="b", issue_number=1,
            issue_url="https://github.com/a/b/issues/1",
        )
        result = run_async(resolver.resolve_issue(reference))
        assert result.success is True

    def test_resolve_batch(self, resolver):
        references = [
            IssueReference(
                owner="a", repo="b", issue_number=n,
                issue_url=f"https://github.com/a/b/issues/{n}",
            )
            for n in (3, 2)
        ]
        results = run_async(resolver.resolve_batch(references))
        assert [r.issue_number for r in results] == [3, 2]
        assert [r.success for r in results] == [True, False]

    def test_get_info(self, resolver):
        info = resolver.get_info()
        assert info["name"] == "Issue Resolver"
        assert info["initialized"] is False
        assert "Batch processing" in info["capabilities"]

        run_async(resolver.initialize())
        assert resolver.get_info()["initialized"] is True
