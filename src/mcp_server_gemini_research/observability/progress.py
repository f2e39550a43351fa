"""Elapsed-time progress notifications for long-running agent calls."""

import asyncio
import logging
import time

logger = logging.getLogger(__name__)

# Quiet period before the first notification
NOTIFY_AFTER_SECONDS = 15.0
# Past this point notifications are logged as warnings
WARN_AFTER_SECONDS = 120.0


class ElapsedProgress:
    """Periodically reports how long an agent call has been running.

    Purely observational: it only logs and never affects the call being
    watched.

    Usage:
        async with ElapsedProgress("Research", interval=30.0):
            await long_running_call()
    """

    def __init__(
        self,
        label: str,
        interval: float,
        notify_after: float = NOTIFY_AFTER_SECONDS,
        warn_after: float = WARN_AFTER_SECONDS,
    ):
        self.label = label
        self.interval = interval
        self.notify_after = notify_after
        self.warn_after = warn_after
        self._started: float = 0.0
        self._task: asyncio.Task | None = None

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._started

    def message_for(self, elapsed: float) -> tuple[int, str] | None:
        """Log level and message for a given elapsed time, or None while quiet."""
        if elapsed <= self.notify_after:
            return None
        seconds = int(elapsed)
        if elapsed > self.warn_after:
            return logging.WARNING, f"{self.label} taking longer than expected... (elapsed: {seconds}s)"
        return logging.INFO, f"{self.label} in progress... (elapsed: {seconds}s)"

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            notice = self.message_for(self.elapsed)
            if notice is None:
                continue
            level, message = notice
            logger.log(level, message)

    async def __aenter__(self) -> "ElapsedProgress":
        self._started = time.monotonic()
        self._task = asyncio.create_task(self._tick())
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
