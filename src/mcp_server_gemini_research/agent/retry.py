"""Retry cycle around agent runs: run, extract, validate, correct once, back off."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from tenacity import AsyncRetrying, RetryError, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from ..config import AgentSettings, RetrySettings
from ..exceptions import (
    CorrectionError,
    ExhaustedRetriesError,
    ExtractionError,
    ProcessError,
    ProcessErrorKind,
    ResultValidationError,
)
from .correction import CorrectionFallback
from .extraction import detect_model, extract_json, validate_result
from .models import RetryOutcome, StructuredResult
from .runner import AgentRunner

logger = logging.getLogger(__name__)


def is_retryable(error: BaseException) -> bool:
    """A failed cycle is worth repeating unless the agent binary is missing."""
    if isinstance(error, ProcessError):
        return error.kind is not ProcessErrorKind.NOT_FOUND
    return isinstance(error, CorrectionError)


class RetryOrchestrator:
    """Runs a prompt until the agent yields a valid result or the cycle budget runs out.

    One cycle is a main run plus, when its output is unusable, exactly one
    correction attempt on that same output. The prompt is never changed
    between cycles.
    """

    def __init__(
        self,
        runner: AgentRunner,
        correction: CorrectionFallback,
        agent_settings: AgentSettings,
        retry_settings: RetrySettings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.runner = runner
        self.correction = correction
        self.agent_settings = agent_settings
        self.retry_settings = retry_settings
        self._sleep = sleep

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.retry_settings.max_retries),
            wait=wait_exponential(multiplier=self.retry_settings.backoff_base, max=self.retry_settings.backoff_max),
            retry=retry_if_exception(is_retryable),
            before_sleep=before_sleep_log(logger, logging.INFO),
            sleep=self._sleep,
        )

    async def execute_with_retry(
        self,
        prompt: str,
        schema_example: str,
        model: str | None = None,
    ) -> RetryOutcome:
        """Execute ``prompt`` with retries and the JSON correction fallback.

        Args:
            prompt: Fully rendered prompt text
            schema_example: Example payload shown to the repair call
            model: Main model (None lets the agent auto-select)

        Returns:
            RetryOutcome with the validated result and, when no model was
            given, the model detected from agent output.

        Raises:
            ProcessError: NOT_FOUND is raised at once, it cannot succeed on retry.
            ExhaustedRetriesError: When every cycle failed.
        """
        max_retries = self.retry_settings.max_retries
        correction_model = self.agent_settings.correction_model or model
        attempt = 0
        detected_model: str | None = None

        async def cycle() -> RetryOutcome:
            nonlocal attempt, detected_model
            attempt += 1
            logger.debug(f"Research attempt {attempt}/{max_retries}")

            try:
                output = await self.runner.run(prompt, model=model)
            except ProcessError as e:
                if e.kind is not ProcessErrorKind.NOT_FOUND:
                    logger.warning(f"Research attempt {attempt} failed: {e}")
                raise

            if model is None:
                detected_model = detect_model(output) or detected_model

            try:
                result = self._parse(output)
                logger.debug("Valid JSON result obtained")
                return RetryOutcome(result=result, detected_model=detected_model, attempts=attempt)
            except (ExtractionError, ResultValidationError) as e:
                logger.info(f"{e}; trying correction fallback")

            try:
                result = await self.correction.correct(output, schema_example, model=correction_model)
            except CorrectionError as e:
                logger.warning(f"Correction failed on attempt {attempt}: {e}")
                raise
            return RetryOutcome(result=result, detected_model=detected_model, attempts=attempt, corrected=True)

        try:
            return await self._retrying()(cycle)
        except RetryError as e:
            raise ExhaustedRetriesError(max_retries, e.last_attempt.exception()) from e

    @staticmethod
    def _parse(output: str) -> StructuredResult:
        payload = extract_json(output)
        if payload is None:
            raise ExtractionError("No JSON payload found in agent output")
        if not validate_result(payload):
            raise ResultValidationError("JSON payload failed result validation")
        return StructuredResult.from_payload(payload)
