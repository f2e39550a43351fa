"""MCP server exposing Gemini CLI web research as tools."""

import json
import logging
import sys
import time
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Any

import psutil
from fastmcp import FastMCP
from fastmcp.server.context import Context

from .config import AppSettings, get_settings
from .exceptions import WorkspaceError
from .observability import invocation_context, setup_structured_logging
from .research import ResearchService
from .workspace import prepare_workspace

logger = logging.getLogger(__name__)

SERVER_NAME = "gemini-research-mcp"

# Track server start time for uptime calculation
_server_start_time = time.time()


def _package_version() -> str:
    try:
        return version("mcp-server-gemini-research")
    except PackageNotFoundError:
        return "unknown"


async def _invoke(tool_name: str, call: Awaitable[Any], **fields: Any) -> str:
    """Run one tool call inside its own structured logging context."""
    with invocation_context(tool_name, **fields) as log:
        result = await call
        log.info("invocation_completed", success=result.success)
    return json.dumps(result.model_dump(exclude_none=True), indent=2)


def serve(settings: AppSettings | None = None, service: ResearchService | None = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        settings: Application settings (defaults to the process-wide settings)
        service: Research service to expose (built from settings when omitted)
    """
    settings = settings or get_settings()
    setup_structured_logging(settings.server.logging_level)
    service = service or ResearchService(settings)

    @asynccontextmanager
    async def lifespan(_: FastMCP) -> AsyncIterator[dict[str, Any]]:
        try:
            yield {}
        finally:
            # No agent subprocess may outlive the server
            await service.runner.terminate_all()

    server = FastMCP(SERVER_NAME, lifespan=lifespan)

    @server.tool()
    async def search(query: str, ctx: Context) -> str:
        """
        Run a single round of web research with the Gemini CLI agent.

        Best for quick fact-finding: one Google search, reading the top results
        and a focused markdown report with citations.

        Args:
            query: The question or search query to research

        Returns:
            JSON with success, report and metadata (duration, model, sources),
            or success=false with an error code and message.
        """
        await ctx.info(f"Searching: {query}")
        return await _invoke("search", service.search(query), query=query[:100])

    @server.tool()
    async def deep_search(topic: str, ctx: Context, max_iterations: int | None = None) -> str:
        """
        Run multi-round deep research with verification rounds.

        Round 1 researches the topic from several perspectives. Each following
        round checks the report against independent sources and improves it,
        stopping early once the agent marks it verified.

        Args:
            topic: The research topic or question to investigate
            max_iterations: Maximum number of rounds including the initial one
                (default from settings)

        Returns:
            JSON with success, report, verified flag and metadata (rounds,
            deduplicated sources), or success=false with an error.
        """
        return await _invoke(
            "deep_search",
            service.deep_search(topic, max_iterations=max_iterations, ctx=ctx),
            topic=topic[:100],
            max_iterations=max_iterations,
        )

    @server.tool()
    async def health_check() -> str:
        """
        Health check endpoint with process stats and Gemini CLI availability.

        Returns:
            JSON object with server health status and configuration summary
        """
        process = psutil.Process()
        memory_info = process.memory_info()
        agent_available = await service.runner.is_available()

        return json.dumps(
            {
                "status": "healthy" if agent_available else "degraded",
                "version": _package_version(),
                "uptime_seconds": round(time.time() - _server_start_time, 1),
                "memory_mb": round(memory_info.rss / 1024 / 1024, 1),
                "agent": {
                    "command": settings.agent.command,
                    "available": agent_available,
                    "model": settings.agent.model or "auto-select",
                },
                "firecrawl_enabled": settings.firecrawl.enabled,
                "config_dir": str(settings.config_dir),
            },
            indent=2,
        )

    return server


def startup(settings: AppSettings) -> None:
    """Prepare logging and the agent workspace before serving."""
    setup_structured_logging(settings.server.logging_level)
    prepare_workspace(settings)


def main() -> None:
    """Entry point for MCP server."""
    settings = get_settings()
    try:
        startup(settings)
    except WorkspaceError as e:
        logger.error(str(e))
        sys.exit(1)

    server_instance = serve(settings)
    transport = settings.server.transport
    if transport == "stdio":
        logger.info("Starting Gemini research MCP server (transport: stdio)")
        server_instance.run(transport="stdio")
    elif transport in ("streamable-http", "sse"):
        logger.info(f"Starting Gemini research MCP server (transport: {transport})")
        logger.info(f"HTTP server at http://{settings.server.host}:{settings.server.port}/mcp")
        server_instance.run(transport=transport, host=settings.server.host, port=settings.server.port)
    else:
        raise ValueError(f"Unknown transport: {transport}")


if __name__ == "__main__":
    main()
