"""Deep search state machine: initial research followed by bounded verification rounds."""

import logging
import time
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..agent.models import StructuredResult
from ..agent.retry import RetryOrchestrator
from ..exceptions import GeminiResearchError, ProcessError, ProcessErrorKind, RoundFailure
from .models import (
    DeepSearchFailure,
    DeepSearchMetadata,
    DeepSearchResult,
    DeepSearchSuccess,
    ErrorCode,
    ErrorInfo,
    RoundRecord,
)
from .prompts import DEEP_SEARCH_SCHEMA, get_deep_search_prompt, get_verify_prompt

if TYPE_CHECKING:
    from fastmcp.server.context import Context

logger = logging.getLogger(__name__)

AUTO_DETECTED_MODEL = "auto-detected"


class DeepSearchState(str, Enum):
    INITIAL = "initial"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


def error_details(error: Exception) -> str | None:
    """Free-text details for a caller-visible error."""
    cause = getattr(error, "last_error", None) or error
    return getattr(cause, "detail", None) or (str(cause) if cause is not error else None)


def execution_error(error: GeminiResearchError) -> ErrorInfo:
    """Map an agent-layer exception to a caller-visible error."""
    if isinstance(error, ProcessError) and error.kind is ProcessErrorKind.NOT_FOUND:
        return ErrorInfo(code=ErrorCode.CLI_NOT_FOUND, message=str(error), details=error.detail)
    return ErrorInfo(code=ErrorCode.EXECUTION_ERROR, message=str(error), details=error_details(error))


class DeepSearchMachine:
    """Multi-round deep search with native MCP progress reporting.

    Round 1 researches the topic. Each later round re-checks the current
    report and either marks it verified (stopping the loop) or returns an
    improved report for the next round. A failing verification round ends the
    loop but keeps the best report so far.
    """

    def __init__(
        self,
        topic: str,
        max_iterations: int,
        orchestrator: RetryOrchestrator,
        model: str | None = None,
        ctx: Optional["Context"] = None,
    ):
        self.topic = topic
        self.max_iterations = max_iterations
        self.orchestrator = orchestrator
        self.model = model
        self.ctx = ctx

        self.state = DeepSearchState.INITIAL
        self.current_report = ""
        self.verified = False
        self.rounds: list[RoundRecord] = []
        self.detected_model: str | None = None
        # Insertion-ordered set of every source seen across rounds
        self._sources: dict[str, None] = {}

    @property
    def all_sources(self) -> list[str]:
        return list(self._sources)

    async def _report_progress(self, message: str, completed_rounds: int) -> None:
        """Report progress if an MCP context is available."""
        logger.info(message)
        if not self.ctx:
            return
        await self.ctx.info(message)
        await self.ctx.report_progress(completed_rounds, self.max_iterations)

    async def run(self) -> DeepSearchResult:
        """Execute all rounds and return the final result."""
        start = time.monotonic()
        logger.info(f"Starting deep search on: '{self.topic}' (max iterations: {self.max_iterations})")

        # Round 1: initial research
        await self._report_progress(f"Deep search round 1/{self.max_iterations} (initial research)...", 0)
        try:
            initial = await self._execute_round(get_deep_search_prompt(self.topic, self.model))
        except GeminiResearchError as e:
            self.state = DeepSearchState.FAILED
            logger.error(f"Deep search failed after {self._elapsed_ms(start)}ms: {e}")
            return DeepSearchFailure(error=execution_error(e))

        if not initial.success:
            self.state = DeepSearchState.FAILED
            return DeepSearchFailure(
                error=ErrorInfo(
                    code=ErrorCode.SEARCH_FAILED,
                    message="Initial deep search failed",
                    details=initial.report or "No details provided",
                ),
            )

        self._record_round(1, initial)
        logger.debug(f"Round 1 complete. Verified: {self.verified}")

        # Rounds 2..max: verification
        note: str | None = None
        for round_number in range(2, self.max_iterations + 1):
            if self.verified:
                break
            self.state = DeepSearchState.VERIFYING
            await self._report_progress(
                f"Deep search round {round_number}/{self.max_iterations} (verification)...",
                round_number - 1,
            )
            try:
                result = await self._verify(round_number)
            except Exception as e:
                logger.warning(f"{e}; continuing with previous result")
                self.verified = False
                note = f"Verification did not complete: round {round_number} failed ({e})"
                break

            self._record_round(round_number, result)
            logger.debug(f"Round {round_number} complete. Verified: {self.verified}")

        self.state = DeepSearchState.VERIFIED if self.verified else DeepSearchState.EXHAUSTED
        duration = self._elapsed_ms(start)
        status = "verified" if self.verified else "completed without verification"
        await self._report_progress(f"Deep search {status} in {duration}ms", self.max_iterations)

        return DeepSearchSuccess(
            report=self.current_report,
            verified=self.verified,
            metadata=DeepSearchMetadata(
                duration_ms=duration,
                topic=self.topic,
                model=self.model or self.detected_model or AUTO_DETECTED_MODEL,
                timestamp=datetime.now(UTC).isoformat(),
                total_iterations=len(self.rounds),
                verified=self.verified,
                all_sources=self.all_sources,
                rounds=self.rounds,
                verification_incomplete=note is not None,
                note=note,
            ),
        )

    async def _execute_round(self, prompt: str) -> StructuredResult:
        outcome = await self.orchestrator.execute_with_retry(prompt, DEEP_SEARCH_SCHEMA, model=self.model)
        if outcome.detected_model:
            self.detected_model = outcome.detected_model
        return outcome.result

    async def _verify(self, round_number: int) -> StructuredResult:
        prompt = get_verify_prompt(self.topic, self.current_report, round_number, self.max_iterations, self.model)
        try:
            result = await self._execute_round(prompt)
        except GeminiResearchError as e:
            raise RoundFailure(round_number, str(e)) from e
        if not result.success:
            raise RoundFailure(round_number, result.report or "agent reported failure")
        return result

    def _record_round(self, round_number: int, result: StructuredResult) -> None:
        self.current_report = result.report or ""
        self.verified = result.verified
        sources = result.sources_visited
        if sources:
            self._sources.update(dict.fromkeys(sources))
        self.rounds.append(
            RoundRecord(
                round=round_number,
                sources_visited=sources,
                search_queries_used=result.search_queries_used,
            )
        )

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
