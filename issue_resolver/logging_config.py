"""Structured logging setup for the issue resolver.

All modules log through ``structlog.get_logger(__name__)`` with keyword
context. ``configure_logging`` wires structlog on top of the standard
library so third-party libraries (httpx, uvicorn) share the same output.
"""

import logging
import os
import sys
from typing import Any, MutableMapping, Optional

import structlog


SERVICE_NAME = "issue-resolver"


def _add_service_name(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Tag every log entry with the service name."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(
    level: Optional[str] = None,
    json_output: bool = True,
) -> None:
    """Configure structlog and the root stdlib logger.

    Args:
        level: Log level name. Defaults to the ``LOG_LEVEL`` environment
            variable, then ``INFO``.
        json_output: Render JSON lines when True, human-readable console
            output otherwise.
    """
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
        stream=sys.stdout,
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            _add_service_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
