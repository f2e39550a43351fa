"""MCP server delegating web research to the Gemini CLI agent."""

from .config import AppSettings, get_settings
from .exceptions import CorrectionError, ExhaustedRetriesError, GeminiResearchError, ProcessError
from .research import ResearchService

__all__ = [
    "AppSettings",
    "get_settings",
    "ResearchService",
    "GeminiResearchError",
    "ProcessError",
    "CorrectionError",
    "ExhaustedRetriesError",
]
