"""Tests for configuration loading and priority."""

import json
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from mcp_server_gemini_research.config import (
    APP_NAME,
    AgentSettings,
    AppSettings,
    DeepSearchSettings,
    FirecrawlSettings,
    RetrySettings,
    get_config_dir,
    load_config_file,
    load_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove any configuration from the environment before each test."""
    for var in list(os.environ.keys()):
        if var.startswith(("GEMINI_RESEARCH_", "FIRECRAWL_")):
            monkeypatch.delenv(var, raising=False)


class TestConfigDir:
    """Platform config directory resolution."""

    def test_env_override(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("GEMINI_RESEARCH_CONFIG_DIR", str(tmp_path / "custom"))
        assert get_config_dir() == tmp_path / "custom"

    def test_default_ends_with_app_name(self):
        assert get_config_dir().name == APP_NAME

    def test_not_created(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("GEMINI_RESEARCH_CONFIG_DIR", str(tmp_path / "lazy"))
        get_config_dir()
        assert not (tmp_path / "lazy").exists()


class TestDefaults:
    """Built-in defaults."""

    def test_agent_defaults(self):
        agent = AgentSettings()
        assert agent.command == "gemini"
        assert agent.model is None
        assert agent.timeout == 300.0
        assert agent.flags == ["--approval-mode", "default"]
        assert agent.kill_grace == 5.0

    def test_retry_defaults(self):
        retry = RetrySettings()
        assert retry.max_retries == 3
        assert retry.backoff_base == 1.0
        assert retry.backoff_max == 5.0

    def test_deep_search_default(self):
        assert DeepSearchSettings().max_iterations == 5

    def test_firecrawl_disabled_without_credentials(self):
        assert FirecrawlSettings().enabled is False


class TestValidation:
    """Range checks and clamping."""

    def test_max_iterations_clamped_to_two(self):
        assert DeepSearchSettings(max_iterations=1).max_iterations == 2
        assert DeepSearchSettings(max_iterations=0).max_iterations == 2

    def test_max_iterations_from_env_clamped(self, monkeypatch):
        monkeypatch.setenv("GEMINI_RESEARCH_DEEP_SEARCH_MAX_ITERATIONS", "1")
        assert DeepSearchSettings().max_iterations == 2

    def test_max_retries_must_be_positive(self):
        with pytest.raises(ValidationError):
            RetrySettings(max_retries=0)

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            AgentSettings(timeout=0)


class TestEnvironment:
    """Environment variable mapping."""

    def test_agent_env(self, monkeypatch):
        monkeypatch.setenv("GEMINI_RESEARCH_AGENT_MODEL", "gemini-2.5-pro")
        monkeypatch.setenv("GEMINI_RESEARCH_AGENT_TIMEOUT", "60")
        agent = AgentSettings()
        assert agent.model == "gemini-2.5-pro"
        assert agent.timeout == 60.0

    def test_firecrawl_env(self, monkeypatch):
        monkeypatch.setenv("FIRECRAWL_API_KEY", "fc-secret")
        firecrawl = FirecrawlSettings()
        assert firecrawl.enabled is True
        assert firecrawl.api_key.get_secret_value() == "fc-secret"
        assert "fc-secret" not in repr(firecrawl)


class TestConfigFile:
    """JSON config file and priority against env vars."""

    def write_config(self, directory: Path, data) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        (directory / "config.json").write_text(json.dumps(data))

    def test_missing_file(self, tmp_path: Path):
        assert load_config_file(tmp_path) == {}

    def test_corrupt_file_ignored(self, tmp_path: Path):
        (tmp_path / "config.json").write_text("{not json")
        assert load_config_file(tmp_path) == {}

    def test_file_values_applied(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("GEMINI_RESEARCH_CONFIG_DIR", str(tmp_path))
        self.write_config(tmp_path, {"agent": {"model": "file-model"}, "retry": {"max_retries": 5}})

        settings = load_settings()

        assert isinstance(settings, AppSettings)
        assert settings.config_dir == tmp_path
        assert settings.agent.model == "file-model"
        assert settings.retry.max_retries == 5

    def test_env_beats_file(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("GEMINI_RESEARCH_CONFIG_DIR", str(tmp_path))
        monkeypatch.setenv("GEMINI_RESEARCH_AGENT_MODEL", "env-model")
        self.write_config(tmp_path, {"agent": {"model": "file-model", "timeout": 120}})

        settings = load_settings()

        assert settings.agent.model == "env-model"
        assert settings.agent.timeout == 120.0

    def test_gemini_settings_path(self, tmp_path: Path):
        settings = AppSettings(config_dir=tmp_path)
        assert settings.gemini_settings_path == tmp_path / ".gemini" / "settings.json"
