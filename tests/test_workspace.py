"""Tests for config directory bootstrap."""

import json
from pathlib import Path

import pytest
from pydantic import SecretStr

from mcp_server_gemini_research.config import AppSettings, FirecrawlSettings
from mcp_server_gemini_research.exceptions import WorkspaceError
from mcp_server_gemini_research.workspace import ensure_workspace, prepare_workspace


def with_firecrawl(settings: AppSettings, key: str | None) -> AppSettings:
    settings.firecrawl = FirecrawlSettings(api_key=SecretStr(key) if key else None, api_url=None)
    return settings


def read_settings(settings: AppSettings) -> dict:
    return json.loads(settings.gemini_settings_path.read_text())


class TestEnsureWorkspace:
    """settings.json generation for the agent."""

    def test_creates_directories(self, tmp_path: Path):
        settings = with_firecrawl(AppSettings(config_dir=tmp_path / "fresh"), None)
        ensure_workspace(settings)
        assert read_settings(settings) == {"mcpServers": {}}

    def test_firecrawl_server_configured(self, settings):
        with_firecrawl(settings, "fc-key")
        ensure_workspace(settings)

        firecrawl = read_settings(settings)["mcpServers"]["firecrawl"]
        assert firecrawl["command"] == "npx"
        assert firecrawl["args"] == ["-y", "firecrawl-mcp"]
        assert firecrawl["env"]["FIRECRAWL_API_KEY"] == "fc-key"
        assert firecrawl["env"]["HTTP_STREAMABLE_SERVER"] == "true"

    def test_existing_file_kept(self, settings):
        with_firecrawl(settings, None)
        settings.gemini_settings_path.parent.mkdir(parents=True)
        settings.gemini_settings_path.write_text(json.dumps({"mcpServers": {}, "theme": "custom"}))

        ensure_workspace(settings)

        assert read_settings(settings)["theme"] == "custom"

    def test_regenerated_when_firecrawl_added(self, settings):
        ensure_workspace(with_firecrawl(settings, None))
        ensure_workspace(with_firecrawl(settings, "fc-key"))
        assert "firecrawl" in read_settings(settings)["mcpServers"]

    def test_regenerated_when_firecrawl_removed(self, settings):
        ensure_workspace(with_firecrawl(settings, "fc-key"))
        ensure_workspace(with_firecrawl(settings, None))
        assert read_settings(settings) == {"mcpServers": {}}

    def test_corrupt_file_regenerated(self, settings):
        with_firecrawl(settings, None)
        settings.gemini_settings_path.parent.mkdir(parents=True)
        settings.gemini_settings_path.write_text("{broken")

        ensure_workspace(settings)

        assert read_settings(settings) == {"mcpServers": {}}

    def test_unwritable_location(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(WorkspaceError, match="Failed to create config directory"):
            ensure_workspace(AppSettings(config_dir=blocker / "nested"))


class TestPrepareWorkspace:
    """Startup routine."""

    def test_sweeps_orphans(self, settings):
        orphan = settings.config_dir / "json-correction-20250101_120000_000001-0badc0de.txt"
        orphan.write_text("left over")

        prepare_workspace(settings)

        assert not orphan.exists()
        assert settings.gemini_settings_path.exists()
