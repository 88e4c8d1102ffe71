"""Task preparation and LLM code generation."""

from issue_resolver.generation.agent import (
    CodeGenerationError,
    CodeGenerator,
    build_generation_prompt,
)
from issue_resolver.generation.task import (
    TaskPreparer,
    extract_context_snippets,
    extract_referenced_files,
)

__all__ = [
    "CodeGenerationError",
    "CodeGenerator",
    "TaskPreparer",
    "build_generation_prompt",
    "extract_context_snippets",
    "extract_referenced_files",
]
