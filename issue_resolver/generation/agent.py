"""LLM-based code generation for issue resolution.

This module implements the CodeGenerator that asks a language model for a
fix to a prepared task and turns the answer into validated file changes.

The model is reached through LangChain's ChatOpenAI client against any
OpenAI-compatible endpoint (``ai.baseUrl``); the API key is read from the
variable named by ``ai.apiKeyEnvName``.

Source:
- issue_resolver/pipeline/contracts.py (TaskConfig, CodeGenerationResult)
- issue_resolver/config/manager.py (ai and security sections)
"""

import json
from typing import Any, Dict, List, Optional

import structlog
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from issue_resolver.config.manager import ConfigurationManager
from issue_resolver.pipeline.contracts import (
    CodeGenerationResult,
    FileChange,
    TaskConfig,
)


logger = structlog.get_logger(__name__)


RESPONSE_FORMAT_INSTRUCTIONS = """You MUST respond with valid JSON only. Do not include any text before or after the JSON object.

Respond with this exact JSON structure:
{
  "summary": "short explanation of the fix",
  "changes": [
    {
      "path": "relative/path/to/file.py",
      "content": "complete new file content",
      "description": "what changed in this file"
    }
  ]
}

Each entry in "changes" carries the COMPLETE new content of the file, not a diff."""


class CodeGenerationError(Exception):
    """Raised when code generation or validation fails.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


def build_generation_prompt(task: TaskConfig) -> str:
    """Build the user prompt for one task."""
    sections = [task.instructions]

    if task.context_snippets:
        sections.append("Relevant context from the issue:")
        sections.extend(f"```\n{snippet}\n```" for snippet in task.context_snippets)

    if task.referenced_files:
        files = "\n".join(f"- {path}" for path in task.referenced_files)
        sections.append(f"Files mentioned in the issue:\n{files}")

    sections.append("Provide the fix as JSON.")
    return "\n\n".join(sections)


def _parse_llm_response(response_text: str) -> Dict[str, Any]:
    """Parse the LLM response text into a dictionary.

    Handles markdown code fences around the JSON.

    Raises:
        json.JSONDecodeError: If the response is not valid JSON.
    """
    text = response_text.strip()

    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]

    if text.endswith("```"):
        text = text[:-3]

    return json.loads(text.strip())


def _normalize_changes(data: Dict[str, Any]) -> List[FileChange]:
    """Convert the ``changes`` array into FileChange models.

    Entries without a path or content are skipped; duplicate paths keep the
    last entry.
    """
    raw_changes = data.get("changes")
    if raw_changes is None:
        raw_changes = data.get("code_changes", [])
    if not isinstance(raw_changes, list):
        raise ValueError("'changes' must be a list")

    by_path: Dict[str, FileChange] = {}
    for entry in raw_changes:
        if not isinstance(entry, dict):
            continue
        path = str(entry.get("path") or "").strip().lstrip("/")
        content = entry.get("content")
        if not path or not isinstance(content, str):
            logger.warning("Skipping malformed change entry", path=path or None)
            continue
        by_path.pop(path, None)
        by_path[path] = FileChange(
            path=path,
            content=content,
            description=str(entry.get("description") or ""),
        )
    return list(by_path.values())


class CodeGenerator:
    """Generates code changes for a task with a language model.

    Attributes:
        config: Configuration manager supplying the ``ai`` and ``security``
            sections.
        timeout: Request timeout in seconds.

    Example:
        >>> generator = CodeGenerator(config)
        >>> result = await generator.generate_and_validate_code(task)
        >>> [change.path for change in result.code_changes]
        ['src/app.py']
    """

    def __init__(
        self,
        config: ConfigurationManager,
        llm: Optional[ChatOpenAI] = None,
        timeout: float = 120.0,
    ):
        self.config = config
        self.timeout = timeout
        self._llm = llm

    @property
    def llm(self) -> ChatOpenAI:
        """Get the LLM client, creating it from the ``ai`` section if necessary."""
        if self._llm is None:
            settings = self.config.ai_settings()
            self._llm = ChatOpenAI(
                base_url=settings.base_url or None,
                model=settings.model,
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
                timeout=self.timeout,
                api_key=(
                    self.config.get_environment_value(settings.api_key_env_name)
                    or "not-needed"
                ),
            )
        return self._llm

    async def generate_and_validate_code(self, task: TaskConfig) -> CodeGenerationResult:
        """Ask the model for a fix and validate the proposed changes.

        Raises:
            CodeGenerationError: If the model call fails, the answer cannot
                be parsed, no usable change is proposed, or a change targets
                a file type outside the allow-list.
        """
        logger.info(
            "Generating code for issue",
            issue_number=task.issue.number,
            model=task.model,
            snippet_count=len(task.context_snippets),
        )

        result = await self._generate(task)
        self._validate(result)

        logger.info(
            "Code generated successfully",
            issue_number=task.issue.number,
            change_count=len(result.code_changes),
        )
        return result

    async def _generate(self, task: TaskConfig) -> CodeGenerationResult:
        system_message = task.system_message or self.config.ai_settings().system_message
        messages = [
            SystemMessage(content=f"{system_message}\n\n{RESPONSE_FORMAT_INSTRUCTIONS}"),
            HumanMessage(content=build_generation_prompt(task)),
        ]

        try:
            response = await self.llm.ainvoke(messages)
        except Exception as e:
            raise CodeGenerationError(f"LLM invocation failed: {e}", cause=e) from e

        response_text = response.content
        if not isinstance(response_text, str):
            raise CodeGenerationError(
                f"Unexpected response type: {type(response_text).__name__}"
            )

        try:
            parsed = _parse_llm_response(response_text)
        except json.JSONDecodeError as e:
            logger.warning(
                "Failed to parse LLM response as JSON",
                response_preview=response_text[:200],
                error=str(e),
            )
            raise CodeGenerationError(f"Invalid JSON response: {e}", cause=e) from e

        if not isinstance(parsed, dict):
            raise CodeGenerationError("Response must be a JSON object")

        try:
            changes = _normalize_changes(parsed)
        except ValueError as e:
            raise CodeGenerationError(f"Response validation failed: {e}", cause=e) from e

        return CodeGenerationResult(
            code_changes=changes,
            summary=str(parsed.get("summary") or ""),
        )

    def _validate(self, result: CodeGenerationResult) -> None:
        if not result.code_changes:
            raise CodeGenerationError("No code changes were generated")

        for change in result.code_changes:
            if ".." in change.path.split("/"):
                raise CodeGenerationError(f"Path escapes repository: {change.path}")

        security = self.config.security_settings()
        if not security.validate_code_before_commit:
            return

        max_size = self.config.task_settings().max_file_size
        for change in result.code_changes:
            if not self.config.is_file_type_allowed(change.path):
                raise CodeGenerationError(f"File type not allowed: {change.path}")
            if len(change.content) > max_size:
                raise CodeGenerationError(
                    f"Generated file exceeds maxFileSize: {change.path}"
                )
