"""Pytest configuration and fixtures for gemini-research MCP tests."""

import json
from pathlib import Path

import pytest

from mcp_server_gemini_research.config import AgentSettings, AppSettings, DeepSearchSettings, RetrySettings
from mcp_server_gemini_research.exceptions import ProcessError, ProcessErrorKind


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: Tests that spawn real subprocesses")


class AgentOutput:
    """Builders for agent-style output: some chatter followed by a fenced JSON block."""

    CORRECTION_MARKER = "JSON repair specialist"

    @staticmethod
    def fenced(payload: dict) -> str:
        return f"I researched the topic.\n\n```json\n{json.dumps(payload)}\n```\n"

    @staticmethod
    def search(report: str = "# Report\n\nFindings [1].", **metadata) -> dict:
        return {"success": True, "report": report, "metadata": metadata}

    @staticmethod
    def deep(report: str, verified: bool = False, sources: list[str] | None = None, queries: list[str] | None = None) -> dict:
        return {
            "success": True,
            "verified": verified,
            "report": report,
            "metadata": {"sources_visited": sources or [], "search_queries_used": queries or []},
        }


class FakeRunner:
    """Scripted stand-in for AgentRunner.

    Main and correction calls are told apart by the correction prompt and
    served from separate queues. A queued exception is raised instead of
    returned.
    """

    def __init__(self, outputs=(), corrections=(), available: bool = True):
        self.outputs = list(outputs)
        self.corrections = list(corrections)
        self.available = available
        self.main_calls: list[tuple[str, str | None]] = []
        self.correction_calls: list[tuple[str, str | None]] = []
        self.terminated = False

    async def run(self, prompt: str, model: str | None = None) -> str:
        if AgentOutput.CORRECTION_MARKER in prompt:
            self.correction_calls.append((prompt, model))
            queue = self.corrections
        else:
            self.main_calls.append((prompt, model))
            queue = self.outputs
        if not queue:
            raise ProcessError(ProcessErrorKind.NON_ZERO_EXIT, "No scripted output left", exit_code=1)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def is_available(self) -> bool:
        return self.available

    async def terminate_all(self) -> None:
        self.terminated = True


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def make_runner() -> type[FakeRunner]:
    """Factory for scripted agent runners: ``make_runner(outputs=[...], corrections=[...])``."""
    return FakeRunner


@pytest.fixture
def agent_output() -> type[AgentOutput]:
    """Builders for scripted agent output."""
    return AgentOutput


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "gemini-research-mcp"
    directory.mkdir()
    return directory


@pytest.fixture
def settings(config_dir: Path) -> AppSettings:
    """Settings isolated to a temp config dir, with zero backoff."""
    return AppSettings(
        config_dir=config_dir,
        agent=AgentSettings(command="gemini", model=None, correction_model=None),
        retry=RetrySettings(max_retries=3, backoff_base=0.0, backoff_max=0.0),
        deep_search=DeepSearchSettings(max_iterations=5),
    )
