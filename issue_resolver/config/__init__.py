"""Resolver configuration.

Defaults, optional JSON/YAML file overrides and environment overrides,
merged and validated by a single ConfigurationManager.
"""

from issue_resolver.config.manager import (
    ConfigError,
    ConfigInitError,
    ConfigIOError,
    ConfigurationManager,
    EnvironmentOverrides,
    deep_merge,
    load_config_file,
)
from issue_resolver.config.models import (
    DEFAULT_CONFIG,
    AISettings,
    BatchSettings,
    DebugSettings,
    GitHubSettings,
    PullRequestSettings,
    ResolverConfig,
    SecuritySettings,
    TaskSettings,
)

__all__ = [
    # Manager
    "ConfigError",
    "ConfigInitError",
    "ConfigIOError",
    "ConfigurationManager",
    "EnvironmentOverrides",
    "deep_merge",
    "load_config_file",
    # Models
    "DEFAULT_CONFIG",
    "AISettings",
    "BatchSettings",
    "DebugSettings",
    "GitHubSettings",
    "PullRequestSettings",
    "ResolverConfig",
    "SecuritySettings",
    "TaskSettings",
]
