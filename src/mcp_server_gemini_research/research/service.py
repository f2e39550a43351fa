"""Entry points for search and deep search.

Both entry points always return a result model and never raise: failures are
reported as ``{success: false, error: {code, message, details}}``.
"""

import logging
import time
import traceback
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional

from ..agent.correction import CorrectionFallback
from ..agent.retry import RetryOrchestrator
from ..agent.runner import INSTALL_HINT, AgentRunner
from ..config import AppSettings
from ..exceptions import GeminiResearchError
from .machine import AUTO_DETECTED_MODEL, DeepSearchMachine, execution_error
from .models import (
    DeepSearchFailure,
    DeepSearchResult,
    ErrorCode,
    ErrorInfo,
    SearchFailure,
    SearchMetadata,
    SearchResult,
    SearchSuccess,
)
from .prompts import SEARCH_SCHEMA, get_search_prompt

if TYPE_CHECKING:
    from fastmcp.server.context import Context

logger = logging.getLogger(__name__)

CLI_NOT_FOUND_ERROR = ErrorInfo(
    code=ErrorCode.CLI_NOT_FOUND,
    message="Gemini CLI is not installed or not in PATH",
    details=INSTALL_HINT,
)


class ResearchService:
    """Wires runner, correction fallback and retry orchestrator from settings.

    Usage:
        service = ResearchService(settings)
        result = await service.search("What changed in Python 3.13?")
        result = await service.deep_search("State of solid-state batteries", max_iterations=3)
    """

    def __init__(self, settings: AppSettings, runner: AgentRunner | None = None):
        self.settings = settings
        self.runner = runner or AgentRunner(settings.agent, cwd=settings.config_dir)
        self.correction = CorrectionFallback(self.runner, settings.config_dir)
        self.orchestrator = RetryOrchestrator(self.runner, self.correction, settings.agent, settings.retry)

    async def search(self, query: str) -> SearchResult:
        """Single-round search: one agent research cycle, returned with metadata."""
        start = time.monotonic()
        model = self.settings.agent.model
        logger.info(f'Starting search for: "{query}"')

        if not await self.runner.is_available():
            logger.error("Gemini CLI not found")
            return SearchFailure(error=CLI_NOT_FOUND_ERROR)

        try:
            outcome = await self.orchestrator.execute_with_retry(
                get_search_prompt(query, model),
                SEARCH_SCHEMA,
                model=model,
            )
        except GeminiResearchError as e:
            logger.error(f"Search failed after {_elapsed_ms(start)}ms: {e}")
            return SearchFailure(error=execution_error(e))
        except Exception as e:
            logger.exception(f"Unexpected error during search: {e}")
            return SearchFailure(
                error=ErrorInfo(code=ErrorCode.EXECUTION_ERROR, message=str(e), details=traceback.format_exc()),
            )

        result = outcome.result
        duration = _elapsed_ms(start)
        if not result.success:
            return SearchFailure(
                error=ErrorInfo(
                    code=ErrorCode.SEARCH_FAILED,
                    message="Search task completed but returned failure status",
                    details=result.report or "No details provided",
                ),
            )

        logger.info(f"Search completed in {duration}ms")
        return SearchSuccess(
            report=result.report or "",
            metadata=SearchMetadata(
                duration_ms=duration,
                query=query,
                model=model or outcome.detected_model or AUTO_DETECTED_MODEL,
                timestamp=datetime.now(UTC).isoformat(),
                sources_visited=result.sources_visited,
                search_queries_used=result.search_queries_used,
                iterations=result.iterations or 1,
            ),
        )

    async def deep_search(
        self,
        topic: str,
        max_iterations: int | None = None,
        ctx: Optional["Context"] = None,
    ) -> DeepSearchResult:
        """Multi-round search that verifies and improves the report until verified or out of rounds."""
        if max_iterations is None:
            max_iterations = self.settings.deep_search.max_iterations
        if max_iterations < 1:
            return DeepSearchFailure(
                error=ErrorInfo(
                    code=ErrorCode.INVALID_PARAMS,
                    message=f"max_iterations must be at least 1, got {max_iterations}",
                ),
            )

        if not await self.runner.is_available():
            logger.error("Gemini CLI not found")
            return DeepSearchFailure(error=CLI_NOT_FOUND_ERROR)

        machine = DeepSearchMachine(
            topic=topic,
            max_iterations=max_iterations,
            orchestrator=self.orchestrator,
            model=self.settings.agent.model,
            ctx=ctx,
        )
        try:
            return await machine.run()
        except Exception as e:
            logger.exception(f"Unexpected error during deep search: {e}")
            return DeepSearchFailure(
                error=ErrorInfo(code=ErrorCode.EXECUTION_ERROR, message=str(e), details=traceback.format_exc()),
            )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
