"""Structured logging with per-invocation context using structlog and contextvars."""

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

_configured = False

# Dependencies that are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "mcp", "fastmcp", "sse_starlette", "uvicorn.access")


def configure_stderr_logging(level: str = "INFO") -> None:
    """Route every log record to stderr.

    In stdio MCP mode, stdout is reserved exclusively for JSON-RPC messages.
    Any logging or print() to stdout corrupts the protocol stream.
    """
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    root = logging.getLogger()
    root.handlers = [stderr_handler]
    root.setLevel(logging.WARNING)

    for logger_name in NOISY_LOGGERS:
        dep_logger = logging.getLogger(logger_name)
        dep_logger.setLevel(logging.WARNING)

    logging.getLogger("mcp_server_gemini_research").setLevel(getattr(logging, level.upper(), logging.INFO))


def setup_structured_logging(level: str = "INFO") -> None:
    """Configure structlog with JSON output and per-invocation context.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    global _configured
    if _configured:
        return

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,  # Inject invocation context
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    configure_stderr_logging(level)
    _configured = True


@contextmanager
def invocation_context(tool_name: str, **fields: Any) -> Iterator[structlog.stdlib.BoundLogger]:
    """Scope one tool call: fresh invocation ID, start/failure events, prior context restored on exit.

    Every structlog event emitted inside the block carries ``invocation_id``
    and ``tool_name``.

    Usage:
        with invocation_context("search", query=query) as log:
            result = await service.search(query)
            log.info("invocation_completed", success=result.success)
    """
    with structlog.contextvars.bound_contextvars(invocation_id=str(uuid.uuid4()), tool_name=tool_name):
        log = structlog.get_logger("mcp_server_gemini_research")
        log.info("invocation_started", **fields)
        try:
            yield log
        except Exception as e:
            log.error("invocation_failed", error=str(e), error_type=type(e).__name__)
            raise
