"""Pytest configuration for all tests."""

import pytest

from issue_resolver.config.manager import ConfigurationManager


OVERRIDE_VARIABLES = (
    "AI_MODEL",
    "AI_TEMPERATURE",
    "AI_MAX_TOKENS",
    "DEBUG_MODE",
    "PR_AS_DRAFT",
    "MAX_CONCURRENT_ISSUES",
    "GITHUB_TOKEN",
    "ANTHROPIC_API_KEY",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove every variable the configuration manager reads."""
    for name in OVERRIDE_VARIABLES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config():
    """An initialized configuration manager that ignores any .env file."""
    manager = ConfigurationManager(env_file=None)
    manager.initialize()
    return manager
