"""Tests for invocation logging context and elapsed-time progress."""

import asyncio
import logging

import pytest
import structlog

from mcp_server_gemini_research.observability import ElapsedProgress, invocation_context


class TestInvocationContext:
    """Per-call structlog context."""

    def test_binds_id_and_tool(self):
        with invocation_context("deep_search", topic="t"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["tool_name"] == "deep_search"
            assert len(bound["invocation_id"]) == 36
        assert "invocation_id" not in structlog.contextvars.get_contextvars()

    def test_fresh_id_per_call(self):
        ids = []
        for _ in range(2):
            with invocation_context("search"):
                ids.append(structlog.contextvars.get_contextvars()["invocation_id"])
        assert ids[0] != ids[1]

    def test_restores_outer_context(self):
        with structlog.contextvars.bound_contextvars(request="outer"):
            with invocation_context("search"):
                assert structlog.contextvars.get_contextvars()["request"] == "outer"
            assert structlog.contextvars.get_contextvars() == {"request": "outer"}

    @pytest.mark.anyio
    async def test_context_isolated_between_tasks(self):
        seen: dict[str, str] = {}

        async def invocation(tool_name: str) -> None:
            with invocation_context(tool_name):
                await asyncio.sleep(0.01)
                seen[tool_name] = structlog.contextvars.get_contextvars()["tool_name"]

        await asyncio.gather(invocation("search"), invocation("deep_search"))
        assert seen == {"search": "search", "deep_search": "deep_search"}

    def test_cleared_on_error(self):
        with pytest.raises(RuntimeError):
            with invocation_context("search"):
                raise RuntimeError("agent crashed")
        assert "invocation_id" not in structlog.contextvars.get_contextvars()


class TestElapsedProgress:
    """Elapsed-time notices."""

    def test_quiet_period(self):
        progress = ElapsedProgress("Research", interval=30.0)
        assert progress.message_for(10.0) is None
        assert progress.message_for(15.0) is None

    def test_info_after_quiet_period(self):
        progress = ElapsedProgress("Research", interval=30.0)
        assert progress.message_for(45.7) == (logging.INFO, "Research in progress... (elapsed: 45s)")

    def test_warning_when_long(self):
        progress = ElapsedProgress("Research", interval=30.0)
        level, message = progress.message_for(150.0)
        assert level == logging.WARNING
        assert message == "Research taking longer than expected... (elapsed: 150s)"

    @pytest.mark.anyio
    async def test_ticker_stopped_on_exit(self):
        progress = ElapsedProgress("Research", interval=0.01, notify_after=0.0)
        async with progress:
            await asyncio.sleep(0.05)
            task = progress._task
            assert task is not None and not task.done()
        assert task.done()
        assert progress._task is None

    @pytest.mark.anyio
    async def test_does_not_swallow_body_errors(self):
        with pytest.raises(ValueError):
            async with ElapsedProgress("Research", interval=0.01):
                raise ValueError("body failed")
