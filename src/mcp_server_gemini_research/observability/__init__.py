"""Observability module for structured logging and progress reporting."""

from .logging import configure_stderr_logging, invocation_context, setup_structured_logging
from .progress import ElapsedProgress

__all__ = [
    "ElapsedProgress",
    "configure_stderr_logging",
    "invocation_context",
    "setup_structured_logging",
]
