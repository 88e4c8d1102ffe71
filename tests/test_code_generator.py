"""Unit tests for the LLM code generator."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import HumanMessage, SystemMessage

from issue_resolver.generation.agent import (
    CodeGenerationError,
    CodeGenerator,
    _parse_llm_response,
    build_generation_prompt,
)
from issue_resolver.pipeline.contracts import IssueData, TaskConfig


def run_async(coro):
    return asyncio.run(coro)


def _make_task(**overrides) -> TaskConfig:
    fields = dict(
        issue=IssueData(number=3, title="Bug", owner="acme", repo="widgets"),
        instructions="Resolve GitHub issue #3",
        context_snippets=["ValueError: boom"],
        referenced_files=["src/app.py"],
        model="test-model",
        temperature=0.2,
        max_tokens=1000,
        system_message="You fix bugs.",
    )
    fields.update(overrides)
    return TaskConfig(**fields)


def _make_llm(content) -> MagicMock:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=MagicMock(content=content))
    return llm


def _answer(changes, summary="Fixed it") -> str:
    return json.dumps({"summary": summary, "changes": changes})


class TestParseResponse:
    def test_plain_json(self):
        assert _parse_llm_response('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        assert _parse_llm_response('```json\n{"a": 1}\n```') == {"a": 1}

    def test_bare_fence(self):
        assert _parse_llm_response('```\n{"a": 1}\n```') == {"a": 1}

    def test_invalid(self):
        with pytest.raises(json.JSONDecodeError):
            _parse_llm_response("not json")


class TestBuildPrompt:
    def test_prompt_contains_context(self):
        prompt = build_generation_prompt(_make_task())
        assert "Resolve GitHub issue #3" in prompt
        assert "ValueError: boom" in prompt
        assert "- src/app.py" in prompt

    def test_prompt_without_context(self):
        prompt = build_generation_prompt(_make_task(context_snippets=[], referenced_files=[]))
        assert "Relevant context" not in prompt
        assert "Files mentioned" not in prompt


class TestCodeGenerator:
    def test_generates_changes(self, config):
        llm = _make_llm(
            _answer([{"path": "src/app.py", "content": "x = 1\n", "description": "fix"}])
        )
        generator = CodeGenerator(config, llm=llm)

        result = run_async(generator.generate_and_validate_code(_make_task()))

        assert result.summary == "Fixed it"
        assert [c.path for c in result.code_changes] == ["src/app.py"]
        assert result.code_changes[0].description == "fix"

        messages = llm.ainvoke.await_args.args[0]
        assert isinstance(messages[0], SystemMessage)
        assert messages[0].content.startswith("You fix bugs.")
        assert isinstance(messages[1], HumanMessage)

    def test_malformed_entries_are_skipped(self, config):
        llm = _make_llm(
            _answer(
                [
                    {"path": "", "content": "x"},
                    {"path": "a.py"},
                    "nonsense",
                    {"path": "/b.py", "content": "y"},
                ]
            )
        )
        result = run_async(CodeGenerator(config, llm=llm).generate_and_validate_code(_make_task()))
        assert [c.path for c in result.code_changes] == ["b.py"]

    def test_duplicate_paths_keep_last(self, config):
        llm = _make_llm(
            _answer([{"path": "a.py", "content": "1"}, {"path": "a.py", "content": "2"}])
        )
        result = run_async(CodeGenerator(config, llm=llm).generate_and_validate_code(_make_task()))
        assert [c.content for c in result.code_changes] == ["2"]

    def test_no_changes_is_an_error(self, config):
        generator = CodeGenerator(config, llm=_make_llm(_answer([])))
        with pytest.raises(CodeGenerationError, match="No code changes"):
            run_async(generator.generate_and_validate_code(_make_task()))

    def test_invalid_json_is_an_error(self, config):
        generator = CodeGenerator(config, llm=_make_llm("I could not do it"))
        with pytest.raises(CodeGenerationError, match="Invalid JSON"):
            run_async(generator.generate_and_validate_code(_make_task()))

    def test_non_object_json_is_an_error(self, config):
        generator = CodeGenerator(config, llm=_make_llm("[1, 2]"))
        with pytest.raises(CodeGenerationError, match="JSON object"):
            run_async(generator.generate_and_validate_code(_make_task()))

    def test_non_string_content_is_an_error(self, config):
        generator = CodeGenerator(config, llm=_make_llm([{"type": "text"}]))
        with pytest.raises(CodeGenerationError, match="Unexpected response type"):
            run_async(generator.generate_and_validate_code(_make_task()))

    def test_llm_failure_is_wrapped(self, config):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=ConnectionError("refused"))
        generator = CodeGenerator(config, llm=llm)

        with pytest.raises(CodeGenerationError) as exc_info:
            run_async(generator.generate_and_validate_code(_make_task()))

        assert isinstance(exc_info.value.cause, ConnectionError)

    def test_disallowed_file_type_rejected(self, config):
        llm = _make_llm(_answer([{"path": "tool.exe", "content": "MZ"}]))
        generator = CodeGenerator(config, llm=llm)

        with pytest.raises(CodeGenerationError, match="File type not allowed"):
            run_async(generator.generate_and_validate_code(_make_task()))

    def test_path_traversal_rejected(self, config):
        llm = _make_llm(_answer([{"path": "../outside.py", "content": "x"}]))
        with pytest.raises(CodeGenerationError, match="escapes"):
            run_async(CodeGenerator(config, llm=llm).generate_and_validate_code(_make_task()))

    def test_validation_can_be_disabled(self, config):
        config.update_config("security.validateCodeBeforeCommit", False)
        llm = _make_llm(_answer([{"path": "tool.exe", "content": "MZ"}]))

        result = run_async(CodeGenerator(config, llm=llm).generate_and_validate_code(_make_task()))

        assert result.code_changes[0].path == "tool.exe"

    def test_path_traversal_rejected_without_policy_checks(self, config):
        config.update_config("security.validateCodeBeforeCommit", False)
        llm = _make_llm(_answer([{"path": "src/../../x.py", "content": "x"}]))

        with pytest.raises(CodeGenerationError, match="escapes"):
            run_async(CodeGenerator(config, llm=llm).generate_and_validate_code(_make_task()))

    def test_llm_built_from_ai_settings(self, config, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        generator = CodeGenerator(config)

        llm = generator.llm

        assert llm.model_name == "claude-3-opus-20240229"
        assert llm.temperature == 0.2
        assert llm.max_tokens == 4000
        assert generator.llm is llm
