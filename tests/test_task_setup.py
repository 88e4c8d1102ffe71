"""Unit tests for task preparation."""

import asyncio

from issue_resolver.generation.task import (
    TaskPreparer,
    extract_context_snippets,
    extract_referenced_files,
)
from issue_resolver.pipeline.contracts import IssueData


def run_async(coro):
    return asyncio.run(coro)


ISSUE_BODY = """The app crashes when started.

```python
def main():
    start()
```

Traceback (most recent call last):
ValueError: config missing

It happens in src/app.py and maybe ./lib/util.js, see https://github.com/acme/widgets/wiki.
"""


def _make_issue(body: str = ISSUE_BODY) -> IssueData:
    return IssueData(
        number=7,
        title="Crash in src/main.py",
        body=body,
        labels=["bug"],
        owner="acme",
        repo="widgets",
    )


class TestExtractContextSnippets:
    def test_errors_come_first(self):
        snippets = extract_context_snippets(ISSUE_BODY, max_snippets=10)

        assert snippets[0].startswith("Traceback")
        assert "ValueError: config missing" in snippets
        assert "def main():\n    start()" in snippets

    def test_order_kept_without_prioritization(self):
        snippets = extract_context_snippets(
            ISSUE_BODY, max_snippets=10, prioritize_errors=False
        )
        assert snippets[0] == "def main():\n    start()"

    def test_capped(self):
        assert len(extract_context_snippets(ISSUE_BODY, max_snippets=1)) == 1

    def test_zero_limit(self):
        assert extract_context_snippets(ISSUE_BODY, max_snippets=0) == []

    def test_empty_body(self):
        assert extract_context_snippets("", max_snippets=5) == []


class TestExtractReferencedFiles:
    def test_paths_in_order(self):
        files = extract_referenced_files(ISSUE_BODY)
        assert files[:2] == ["src/app.py", "lib/util.js"]

    def test_url_hosts_are_not_files(self):
        files = extract_referenced_files("see https://github.com/acme/widgets/wiki")
        assert "github.com" not in files

    def test_deduplicated(self):
        assert extract_referenced_files("a.py and a.py") == ["a.py"]


class TestTaskPreparer:
    def test_setup_task(self, config):
        task = run_async(TaskPreparer(config).setup_task(_make_issue()))

        assert task.issue.number == 7
        assert "#7" in task.instructions
        assert "acme/widgets" in task.instructions
        assert "Labels: bug" in task.instructions
        assert task.model == "claude-3-opus-20240229"
        assert task.temperature == 0.2
        assert task.max_tokens == 4000
        assert task.system_message
        assert task.referenced_files == ["src/main.py", "src/app.py", "lib/util.js"]
        assert task.context_snippets

    def test_respects_snippet_limit(self, config):
        config.update_config("task.maxContextSnippets", 1)
        task = run_async(TaskPreparer(config).setup_task(_make_issue()))
        assert len(task.context_snippets) == 1

    def test_body_truncated_to_max_file_size(self, config):
        config.update_config("task.maxFileSize", 20)
        task = run_async(TaskPreparer(config).setup_task(_make_issue("x" * 100)))
        assert "x" * 21 not in task.instructions
        assert "x" * 20 in task.instructions

    def test_disallowed_file_types_dropped(self, config):
        issue = _make_issue("Broken build in tools/build.exe and main.go")
        task = run_async(TaskPreparer(config).setup_task(issue))
        assert task.referenced_files == ["src/main.py", "main.go"]

    def test_empty_body(self, config):
        task = run_async(TaskPreparer(config).setup_task(_make_issue("")))
        assert "(no description provided)" in task.instructions
        assert task.context_snippets == []
