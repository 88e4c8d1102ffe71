"""Configuration document defaults and typed section views.

The configuration document is a nested mapping keyed by section name
(``github``, ``ai``, ``task``, ``pullRequest``, ``security``, ``batch``,
``debug``) using the camelCase keys of the on-disk JSON/YAML format. The
pydantic models below validate that document and expose snake_case
attributes to the rest of the package.

Unknown keys are allowed in every section so that file overrides and
``update_config`` can introduce new settings without a schema change.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_SYSTEM_MESSAGE = (
    "You are OpenHands, an AI agent designed to resolve GitHub issues by "
    "generating code fixes."
)

DEFAULT_ALLOWED_FILE_TYPES: List[str] = [
    ".js",
    ".jsx",
    ".ts",
    ".tsx",
    ".py",
    ".rb",
    ".java",
    ".go",
    ".php",
    ".c",
    ".cpp",
    ".h",
    ".cs",
    ".md",
    ".txt",
    ".json",
    ".yml",
    ".yaml",
]

# Built-in defaults. Never mutate this mapping: the manager always works on
# a deep copy of it.
DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "github": {
        "timeout": 10000,
        "maxRetries": 3,
        "maxConcurrent": 5,
        "apiBaseUrl": "https://api.github.com",
    },
    "ai": {
        "model": "claude-3-opus-20240229",
        "temperature": 0.2,
        "maxTokens": 4000,
        "systemMessage": DEFAULT_SYSTEM_MESSAGE,
        "baseUrl": "https://api.anthropic.com/v1/",
        "apiKeyEnvName": "ANTHROPIC_API_KEY",
    },
    "task": {
        "maxContextSnippets": 10,
        "maxFileSize": 100000,
        "prioritizeErrorContext": True,
    },
    "pullRequest": {
        "defaultAsDraft": True,
        "defaultBaseBranch": "",
        "titlePrefix": "OpenHands: ",
        "addLabels": ["ai-assisted"],
        "createCheckList": True,
        "branchPrefix": "openhands/",
    },
    "security": {
        "tokenEnvName": "GITHUB_TOKEN",
        "validateCodeBeforeCommit": True,
        "allowedFileTypes": list(DEFAULT_ALLOWED_FILE_TYPES),
    },
    "batch": {
        "maxConcurrent": 3,
        "maxIssuesPerBatch": 10,
    },
    "debug": {
        "enabled": False,
        "saveResponses": False,
        "verboseLogging": False,
    },
}


class _Section(BaseModel):
    """Base for configuration sections: camelCase aliases, extra keys kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class GitHubSettings(_Section):
    """GitHub API limits."""

    timeout: int = Field(default=10000, ge=1)
    max_retries: int = Field(default=3, alias="maxRetries", ge=0)
    max_concurrent: int = Field(default=5, alias="maxConcurrent", ge=1)
    api_base_url: str = Field(
        default="https://api.github.com", alias="apiBaseUrl"
    )


class AISettings(_Section):
    """Code generation model parameters."""

    model: str
    temperature: float
    max_tokens: int = Field(alias="maxTokens")
    system_message: str = Field(default=DEFAULT_SYSTEM_MESSAGE, alias="systemMessage")
    base_url: str = Field(default="", alias="baseUrl")
    api_key_env_name: str = Field(default="ANTHROPIC_API_KEY", alias="apiKeyEnvName")

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("AI model not defined")
        return v

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError("AI temperature must be between 0 and 1")
        return v

    @field_validator("max_tokens")
    @classmethod
    def validate_max_tokens(cls, v: int) -> int:
        if not 100 <= v <= 10000:
            raise ValueError("AI maxTokens must be between 100 and 10000")
        return v


class TaskSettings(_Section):
    """Limits applied while preparing a task for code generation."""

    max_context_snippets: int = Field(default=10, alias="maxContextSnippets", ge=0)
    max_file_size: int = Field(default=100000, alias="maxFileSize", ge=1)
    prioritize_error_context: bool = Field(
        default=True, alias="prioritizeErrorContext"
    )


class PullRequestSettings(_Section):
    """Pull request creation policy."""

    default_as_draft: bool = Field(default=True, alias="defaultAsDraft")
    default_base_branch: str = Field(default="", alias="defaultBaseBranch")
    title_prefix: str = Field(default="OpenHands: ", alias="titlePrefix")
    add_labels: List[str] = Field(default_factory=list, alias="addLabels")
    create_check_list: bool = Field(default=True, alias="createCheckList")
    branch_prefix: str = Field(default="openhands/", alias="branchPrefix")


class SecuritySettings(_Section):
    """Token lookup and file-type allow-list."""

    token_env_name: str = Field(alias="tokenEnvName")
    validate_code_before_commit: bool = Field(
        default=True, alias="validateCodeBeforeCommit"
    )
    allowed_file_types: List[str] = Field(
        default_factory=list, alias="allowedFileTypes"
    )

    @field_validator("token_env_name")
    @classmethod
    def validate_token_env_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Security tokenEnvName not defined")
        return v


class BatchSettings(_Section):
    """Batch processing limits."""

    max_concurrent: int = Field(alias="maxConcurrent")
    max_issues_per_batch: int = Field(alias="maxIssuesPerBatch")

    @field_validator("max_concurrent")
    @classmethod
    def validate_max_concurrent(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Batch maxConcurrent must be at least 1")
        return v

    @field_validator("max_issues_per_batch")
    @classmethod
    def validate_max_issues_per_batch(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Batch maxIssuesPerBatch must be at least 1")
        return v


class DebugSettings(_Section):
    """Debug switches."""

    enabled: bool = False
    save_responses: bool = Field(default=False, alias="saveResponses")
    verbose_logging: bool = Field(default=False, alias="verboseLogging")


class ResolverConfig(BaseModel):
    """Validated view over the complete configuration document."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    github: GitHubSettings
    ai: AISettings
    task: TaskSettings
    pull_request: PullRequestSettings = Field(alias="pullRequest")
    security: SecuritySettings
    batch: BatchSettings
    debug: DebugSettings
