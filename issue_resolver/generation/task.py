"""Task preparation for code generation.

Builds the TaskConfig handed to the code generator from fetched issue
data: a task statement, context snippets pulled from the issue body
(fenced code blocks and error output), and the file paths the issue
mentions. Limits come from the ``task`` configuration section.
"""

import re
from typing import List

import structlog

from issue_resolver.config.manager import ConfigurationManager
from issue_resolver.pipeline.contracts import IssueData, TaskConfig


logger = structlog.get_logger(__name__)

CODE_BLOCK_PATTERN = re.compile(r"```[\w+-]*\n(.*?)```", re.DOTALL)
FILE_PATH_PATTERN = re.compile(r"(?<![\w/:.-])((?:[\w.-]+/)*[\w-]+\.[A-Za-z]{1,5})\b")
ERROR_MARKERS = ("Traceback", "Error:", "Exception", "error:", "FATAL", "panic:")


def _is_error_snippet(snippet: str) -> bool:
    return any(marker in snippet for marker in ERROR_MARKERS)


def extract_context_snippets(
    body: str, max_snippets: int, prioritize_errors: bool = True
) -> List[str]:
    """Return code blocks and error output from ``body``.

    Error snippets come first when ``prioritize_errors`` is set; otherwise
    snippets keep their order of appearance. At most ``max_snippets`` are
    returned.
    """
    if max_snippets <= 0 or not body:
        return []

    snippets = [block.strip() for block in CODE_BLOCK_PATTERN.findall(body)]
    snippets = [s for s in snippets if s]

    # Error lines outside fenced blocks.
    unfenced = CODE_BLOCK_PATTERN.sub("", body)
    error_lines = [
        line.strip() for line in unfenced.splitlines() if _is_error_snippet(line)
    ]
    snippets.extend(error_lines)

    if prioritize_errors:
        snippets.sort(key=lambda s: 0 if _is_error_snippet(s) else 1)

    return snippets[:max_snippets]


def extract_referenced_files(text: str) -> List[str]:
    """Return file paths mentioned in ``text`` in order of first appearance."""
    seen: List[str] = []
    for match in FILE_PATH_PATTERN.finditer(text or ""):
        path = match.group(1)
        if path.startswith("./"):
            path = path[2:]
        if path and path not in seen:
            seen.append(path)
    return seen


def build_instructions(issue_data: IssueData, body: str) -> str:
    description = body.strip() or "(no description provided)"
    labels = ", ".join(issue_data.labels) if issue_data.labels else "none"
    return (
        f"Resolve GitHub issue #{issue_data.number} in {issue_data.full_repository}.\n\n"
        f"Title: {issue_data.title}\n"
        f"Labels: {labels}\n\n"
        f"Description:\n{description}"
    )


class TaskPreparer:
    """Turns issue data into a code generation task.

    Attributes:
        config: Configuration manager supplying the ``task``, ``ai`` and
            ``security`` sections.
    """

    def __init__(self, config: ConfigurationManager):
        self.config = config

    async def setup_task(self, issue_data: IssueData) -> TaskConfig:
        task_settings = self.config.task_settings()
        ai_settings = self.config.ai_settings()

        body = issue_data.body
        if len(body) > task_settings.max_file_size:
            logger.warning(
                "Issue body truncated",
                issue_number=issue_data.number,
                length=len(body),
                limit=task_settings.max_file_size,
            )
            body = body[: task_settings.max_file_size]

        snippets = extract_context_snippets(
            body,
            task_settings.max_context_snippets,
            task_settings.prioritize_error_context,
        )
        referenced_files = [
            path
            for path in extract_referenced_files(f"{issue_data.title}\n{body}")
            if self.config.is_file_type_allowed(path)
        ]

        logger.info(
            "Prepared code generation task",
            issue_number=issue_data.number,
            snippet_count=len(snippets),
            referenced_files=referenced_files,
        )

        return TaskConfig(
            issue=issue_data,
            instructions=build_instructions(issue_data, body),
            context_snippets=snippets,
            referenced_files=referenced_files,
            model=ai_settings.model,
            temperature=ai_settings.temperature,
            max_tokens=ai_settings.max_tokens,
            system_message=ai_settings.system_message,
        )
