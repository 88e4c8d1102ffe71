"""FastAPI application exposing the issue resolver over HTTP.

Endpoints:
- POST /invocations: resolve whatever the ``text`` field asks for
- GET /health: liveness probe
- GET /info: resolver name, version and capabilities

Run locally with ``python -m issue_resolver.server``.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from issue_resolver import __version__
from issue_resolver.logging_config import configure_logging
from issue_resolver.resolver import IssueResolver


logger = structlog.get_logger(__name__)


class ServerSettings(BaseSettings):
    """HTTP server configuration from environment variables.

    All environment variables are prefixed with RESOLVER_ (e.g., RESOLVER_PORT).
    """

    model_config = SettingsConfigDict(
        env_prefix="RESOLVER_",
        case_sensitive=False,
    )

    host: str = "0.0.0.0"
    port: int = 8080

    # Optional JSON/YAML configuration file merged over the defaults
    config_path: Optional[str] = None

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v


class InvocationRequest(BaseModel):
    """Body of POST /invocations."""

    text: str = Field(default="")


def create_app(
    resolver: Optional[IssueResolver] = None,
    settings: Optional[ServerSettings] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        resolver: Resolver to serve. Built from ``settings`` when omitted.
        settings: Server settings. Read from the environment when omitted.
    """
    settings = settings or ServerSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        logger.info(
            "Issue resolver starting up",
            host=settings.host,
            port=settings.port,
            config_path=settings.config_path,
        )

        app.state.resolver = resolver or IssueResolver(config_path=settings.config_path)
        if not await app.state.resolver.initialize():
            logger.warning("Issue resolver failed to initialize; will retry per request")

        yield

        logger.info("Issue resolver shutting down...")
        await app.state.resolver.close()
        logger.info("Issue resolver shutdown complete")

    app = FastAPI(
        title="Issue Resolver",
        description="Automated GitHub issue resolution",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health() -> Dict[str, str]:
        """Liveness probe endpoint."""
        return {"status": "healthy"}

    @app.get("/info")
    async def info() -> Dict[str, Any]:
        return app.state.resolver.get_info()

    @app.post("/invocations")
    async def invocations(request: InvocationRequest) -> Dict[str, Any]:
        """Resolve the issue(s) named in ``text``.

        The response is the resolver envelope: ``success`` plus either a
        single resolution result, a batch (``isBatch`` and ``results``) or a
        ``message`` explaining why nothing was resolved.
        """
        return await app.state.resolver.handle_invocation({"text": request.text})

    return app


if __name__ == "__main__":
    import uvicorn

    server_settings = ServerSettings()
    uvicorn.run(
        create_app(settings=server_settings),
        host=server_settings.host,
        port=server_settings.port,
    )
