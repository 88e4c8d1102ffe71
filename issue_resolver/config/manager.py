"""Process-wide configuration management.

The ConfigurationManager builds the configuration document from built-in
defaults, an optional JSON/YAML file and environment overrides, validates
it, and exposes read/update accessors. One manager is constructed at
startup and passed by reference to every component that needs settings.

Single-writer discipline: ``initialize``, ``update_config`` and
``reset_to_defaults`` must not run while a resolution is in flight.
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import structlog
import yaml
from dotenv import dotenv_values
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from issue_resolver.config.models import (
    DEFAULT_CONFIG,
    AISettings,
    BatchSettings,
    GitHubSettings,
    PullRequestSettings,
    ResolverConfig,
    SecuritySettings,
    TaskSettings,
)


logger = structlog.get_logger(__name__)

SECRET_SECURITY_KEYS = ("tokens", "credentials")


class ConfigError(Exception):
    """Base class for configuration failures."""


class ConfigInitError(ConfigError):
    """Raised when the merged configuration violates an invariant.

    Attributes:
        errors: Human-readable validation messages.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(
            f"Configuration validation failed: {', '.join(self.errors)}"
        )


class ConfigIOError(ConfigError):
    """Raised when a configuration file cannot be read or parsed.

    Attributes:
        path: The file that failed to load.
    """

    def __init__(self, path: Union[str, Path], message: str):
        self.path = str(path)
        super().__init__(
            f"Failed to load configuration from {self.path}: {message}"
        )


class EnvironmentOverrides(BaseSettings):
    """Raw environment overrides, read as strings.

    Values are parsed by the manager so that an unparsable number is
    ignored instead of failing startup. An optional ``.env`` file is read
    as well; real environment variables take precedence over it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=True,
    )

    ai_model: Optional[str] = Field(default=None, validation_alias="AI_MODEL")
    ai_temperature: Optional[str] = Field(
        default=None, validation_alias="AI_TEMPERATURE"
    )
    ai_max_tokens: Optional[str] = Field(
        default=None, validation_alias="AI_MAX_TOKENS"
    )
    debug_mode: Optional[str] = Field(default=None, validation_alias="DEBUG_MODE")
    pr_as_draft: Optional[str] = Field(default=None, validation_alias="PR_AS_DRAFT")
    max_concurrent_issues: Optional[str] = Field(
        default=None, validation_alias="MAX_CONCURRENT_ISSUES"
    )


def deep_merge(target: Mapping[str, Any], source: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``source`` into a copy of ``target``.

    Mapping values are merged recursively; every other value, lists
    included, replaces the target value wholesale. Neither input is
    modified.

    Example:
        >>> deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}})
        {'a': {'x': 1, 'y': 3}}
    """
    merged = copy.deepcopy(dict(target))
    for key, value in source.items():
        if isinstance(value, Mapping):
            existing = merged.get(key)
            if not isinstance(existing, Mapping):
                existing = {}
            merged[key] = deep_merge(existing, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _parse_float(value: str) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value.strip(), 10)
    except (AttributeError, TypeError, ValueError):
        return None


def _ensure_section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config.get(name)
    if not isinstance(section, dict):
        section = config[name] = {}
    return section


def _format_validation_errors(exc: ValidationError) -> List[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        messages.append(f"{location}: {message}" if location else message)
    return messages


def load_config_file(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Read a JSON or YAML configuration document.

    Raises:
        ConfigIOError: If the file is missing, unreadable, malformed, of an
            unsupported type, or does not contain a mapping.
    """
    path = Path(config_path)
    if not path.is_file():
        raise ConfigIOError(path, "configuration path is not a file")

    suffix = path.suffix.lower()
    try:
        content = path.read_text(encoding="utf-8")
        if suffix == ".json":
            document = json.loads(content)
        elif suffix in (".yaml", ".yml"):
            document = yaml.safe_load(content)
        else:
            raise ConfigIOError(path, f"unsupported configuration file type {suffix!r}")
    except OSError as e:
        raise ConfigIOError(path, str(e)) from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigIOError(path, f"parse error: {e}") from e

    if not isinstance(document, dict):
        raise ConfigIOError(path, "configuration document must be a mapping")
    return document


class ConfigurationManager:
    """Holds and mutates the resolver configuration document.

    Attributes:
        env_file: ``.env`` file consulted for environment overrides, or
            None to read the process environment only.

    Example:
        >>> manager = ConfigurationManager()
        >>> manager.initialize("resolver.json")
        >>> manager.batch_settings().max_concurrent
        3
    """

    def __init__(self, env_file: Optional[str] = ".env"):
        self.env_file = env_file
        self._config: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self, config_path: Optional[Union[str, Path]] = None) -> None:
        """Build, validate and install the configuration.

        Order: defaults, then the optional file (deep merge), then the
        environment. On failure the manager is left holding the defaults.

        Raises:
            ConfigIOError: If the configuration file cannot be loaded.
            ConfigInitError: If the merged configuration is invalid.
        """
        logger.info("Initializing configuration", config_path=str(config_path or ""))

        self._config = copy.deepcopy(DEFAULT_CONFIG)
        self._initialized = False

        candidate = copy.deepcopy(DEFAULT_CONFIG)
        if config_path:
            candidate = deep_merge(candidate, load_config_file(config_path))
            logger.debug("Merged configuration file", config_path=str(config_path))

        self._apply_environment(candidate)
        logger.debug("Applied environment configuration")

        errors = self.validate(candidate)
        if errors:
            logger.error("Configuration validation failed", errors=errors)
            raise ConfigInitError(errors)

        self._config = candidate
        self._initialized = True
        logger.info("Configuration initialized")

    @staticmethod
    def validate(config: Mapping[str, Any]) -> List[str]:
        """Return the validation messages for a configuration document."""
        try:
            ResolverConfig.model_validate(config)
        except ValidationError as e:
            return _format_validation_errors(e)
        return []

    def _read_environment(self) -> EnvironmentOverrides:
        return EnvironmentOverrides(_env_file=self.env_file)

    def _apply_environment(self, config: Dict[str, Any]) -> None:
        """Apply recognized environment variables onto ``config`` in place."""
        env = self._read_environment()

        token_env_name = config.get("security", {}).get("tokenEnvName") or "GITHUB_TOKEN"
        if self.get_environment_value(token_env_name):
            logger.debug("Found GitHub token in environment", variable=token_env_name)
        else:
            logger.warning(
                "No GitHub token found in environment, API calls may fail",
                variable=token_env_name,
            )

        ai = _ensure_section(config, "ai")
        if env.ai_model:
            ai["model"] = env.ai_model

        if env.ai_temperature:
            temperature = _parse_float(env.ai_temperature)
            if temperature is not None:
                ai["temperature"] = temperature
            else:
                logger.warning("Ignoring unparsable AI_TEMPERATURE", value=env.ai_temperature)

        if env.ai_max_tokens:
            max_tokens = _parse_int(env.ai_max_tokens)
            if max_tokens is not None:
                ai["maxTokens"] = max_tokens
            else:
                logger.warning("Ignoring unparsable AI_MAX_TOKENS", value=env.ai_max_tokens)

        if env.debug_mode == "true":
            debug = _ensure_section(config, "debug")
            debug["enabled"] = True
            debug["verboseLogging"] = True

        if env.pr_as_draft == "false":
            _ensure_section(config, "pullRequest")["defaultAsDraft"] = False

        if env.max_concurrent_issues:
            max_concurrent = _parse_int(env.max_concurrent_issues)
            if max_concurrent is not None:
                _ensure_section(config, "batch")["maxConcurrent"] = max_concurrent
            else:
                logger.warning(
                    "Ignoring unparsable MAX_CONCURRENT_ISSUES",
                    value=env.max_concurrent_issues,
                )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_config(self) -> Dict[str, Any]:
        """Return a top-level copy of the configuration.

        Nested sections are shared with the manager; do not mutate them.
        """
        return dict(self._config)

    def get_section(self, name: str) -> Optional[Dict[str, Any]]:
        """Return a shallow copy of one section, or None if absent."""
        section = self._config.get(name)
        if not isinstance(section, dict):
            return None
        return dict(section)

    def update_config(self, key: str, value: Any) -> bool:
        """Set a value by dot-separated path, creating sections on the way.

        Returns:
            True on success, False if the path is empty or traverses a
            non-mapping value.
        """
        if not key:
            logger.error("Failed to update configuration", key=key, error="empty key")
            return False

        parts = key.split(".")
        current: Any = self._config
        try:
            for part in parts[:-1]:
                if current.get(part) is None:
                    current[part] = {}
                current = current[part]
                if not isinstance(current, dict):
                    raise TypeError(f"{part!r} is not a configuration section")
            current[parts[-1]] = value
        except (AttributeError, TypeError) as e:
            logger.error("Failed to update configuration", key=key, error=str(e))
            return False

        logger.debug("Updated configuration", key=key, value=value)
        return True

    def save_to_file(self, file_path: Union[str, Path]) -> bool:
        """Write the configuration as JSON with secret keys stripped.

        Returns:
            True when the file was written, False otherwise.
        """
        snapshot = copy.deepcopy(self._config)
        security = snapshot.get("security")
        if isinstance(security, dict):
            for secret_key in SECRET_SECURITY_KEYS:
                security.pop(secret_key, None)

        try:
            Path(file_path).write_text(
                json.dumps(snapshot, indent=2), encoding="utf-8"
            )
        except (OSError, TypeError, ValueError) as e:
            logger.error(
                "Failed to save configuration", path=str(file_path), error=str(e)
            )
            return False

        logger.info("Configuration saved", path=str(file_path))
        return True

    def reset_to_defaults(self) -> None:
        """Discard every override and restore the built-in defaults."""
        self._config = copy.deepcopy(DEFAULT_CONFIG)
        logger.info("Configuration reset to defaults")

    def is_file_type_allowed(self, filename: str) -> bool:
        """Check a filename's lowercase extension against the allow-list."""
        if not filename:
            return False
        extension = os.path.splitext(filename)[1].lower()
        if not extension:
            return False
        security = self._config.get("security") or {}
        return extension in (security.get("allowedFileTypes") or [])

    def get_environment_value(self, name: str) -> Optional[str]:
        """Look up a variable in the process environment, then in ``env_file``.

        Real environment variables take precedence, matching the override
        lookup. The ``.env`` file is parsed without touching ``os.environ``.
        """
        value = os.environ.get(name)
        if value:
            return value
        if self.env_file and Path(self.env_file).is_file():
            return dotenv_values(self.env_file).get(name) or None
        return None

    def get_github_token(self) -> Optional[str]:
        """Return the GitHub token from the configured variable, if set."""
        security = self._config.get("security") or {}
        token_env_name = security.get("tokenEnvName") or "GITHUB_TOKEN"
        token = self.get_environment_value(token_env_name)
        if not token:
            logger.warning(
                "GitHub token not found in environment", variable=token_env_name
            )
            return None
        return token

    # ------------------------------------------------------------------
    # Typed section views
    # ------------------------------------------------------------------

    def github_settings(self) -> GitHubSettings:
        return GitHubSettings.model_validate(self._config.get("github") or {})

    def ai_settings(self) -> AISettings:
        return AISettings.model_validate(self._config.get("ai") or {})

    def task_settings(self) -> TaskSettings:
        return TaskSettings.model_validate(self._config.get("task") or {})

    def pull_request_settings(self) -> PullRequestSettings:
        return PullRequestSettings.model_validate(self._config.get("pullRequest") or {})

    def security_settings(self) -> SecuritySettings:
        return SecuritySettings.model_validate(self._config.get("security") or {})

    def batch_settings(self) -> BatchSettings:
        return BatchSettings.model_validate(self._config.get("batch") or {})

    def verbose_logging(self) -> bool:
        debug = self._config.get("debug") or {}
        return bool(debug.get("verboseLogging"))
