"""Configuration management using Pydantic settings with optional file persistence."""

import json
import logging
import os
import sys
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# --- Paths ---

APP_NAME = "gemini-research-mcp"
CONFIG_DIR_ENV = "GEMINI_RESEARCH_CONFIG_DIR"
MIN_DEEP_SEARCH_ITERATIONS = 2


def get_config_dir() -> Path:
    """Get the platform configuration directory (e.g. ~/.config/gemini-research-mcp).

    The directory is not created here; see ``workspace.ensure_workspace``.
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()

    if sys.platform == "darwin":
        base = Path("~/Library/Application Support").expanduser()
    elif os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming")).expanduser()
    else:
        base = Path("~/.config").expanduser()

    return base / APP_NAME


def load_config_file(config_dir: Path | None = None) -> dict[str, Any]:
    """Load settings from the JSON config file if it exists."""
    config_file = (config_dir or get_config_dir()) / "config.json"
    if not config_file.exists():
        return {}

    try:
        text = config_file.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        data = json.loads(text)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable config file {config_file}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


class AgentSettings(BaseSettings):
    """External agent CLI configuration."""

    model_config = SettingsConfigDict(env_prefix="GEMINI_RESEARCH_AGENT_")

    command: str = Field(default="gemini", description="Agent executable name or path")
    model: Optional[str] = Field(default=None, description="Model for research calls (unset = agent auto-selects)")
    correction_model: Optional[str] = Field(default=None, description="Model for JSON repair calls (unset = same as model)")
    timeout: float = Field(default=300.0, gt=0, description="Wall-clock timeout per agent call in seconds")
    flags: list[str] = Field(
        default_factory=lambda: ["--approval-mode", "default"],
        description="Fixed flags restricting agent capabilities",
    )
    verbose: bool = Field(default=False, description="Log agent stderr chunks at debug level")
    progress_interval: float = Field(default=30.0, gt=0, description="Seconds between elapsed-time progress logs")
    kill_grace: float = Field(default=5.0, ge=0, description="Seconds between SIGTERM and SIGKILL on shutdown")


class RetrySettings(BaseSettings):
    """Retry cycle configuration."""

    model_config = SettingsConfigDict(env_prefix="GEMINI_RESEARCH_RETRY_")

    max_retries: int = Field(default=3, ge=1, description="Maximum number of run+correct cycles")
    backoff_base: float = Field(default=1.0, ge=0, description="First backoff delay in seconds")
    backoff_max: float = Field(default=5.0, ge=0, description="Backoff delay cap in seconds")


class DeepSearchSettings(BaseSettings):
    """Multi-round deep search configuration."""

    model_config = SettingsConfigDict(env_prefix="GEMINI_RESEARCH_DEEP_SEARCH_")

    max_iterations: int = Field(default=5, description="Default round budget for deep search")

    @field_validator("max_iterations")
    @classmethod
    def _clamp_iterations(cls, value: int) -> int:
        if value < MIN_DEEP_SEARCH_ITERATIONS:
            logger.warning(f"deep_search.max_iterations={value} is below {MIN_DEEP_SEARCH_ITERATIONS}, clamping")
            return MIN_DEEP_SEARCH_ITERATIONS
        return value


class FirecrawlSettings(BaseSettings):
    """Firecrawl MCP server credentials passed through to the agent."""

    model_config = SettingsConfigDict(env_prefix="FIRECRAWL_")

    api_key: Optional[SecretStr] = Field(default=None)
    api_url: Optional[str] = Field(default=None)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key or self.api_url)


TransportType = Literal["stdio", "streamable-http", "sse"]


class ServerSettings(BaseSettings):
    """Server configuration."""

    model_config = SettingsConfigDict(env_prefix="GEMINI_RESEARCH_SERVER_")

    logging_level: str = Field(default="INFO")
    transport: TransportType = Field(default="stdio", description="MCP transport: stdio, streamable-http, or sse")
    host: str = Field(default="127.0.0.1", description="Host for HTTP transports")
    port: int = Field(default=3000, description="Port for HTTP transports")


class AppSettings(BaseSettings):
    """Root application settings.

    Priority: Environment Variables > Config File > Defaults
    """

    model_config = SettingsConfigDict(env_prefix="GEMINI_RESEARCH_", extra="ignore")

    config_dir: Path = Field(default_factory=get_config_dir)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    deep_search: DeepSearchSettings = Field(default_factory=DeepSearchSettings)
    firecrawl: FirecrawlSettings = Field(default_factory=FirecrawlSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @property
    def gemini_settings_path(self) -> Path:
        return self.config_dir / ".gemini" / "settings.json"


SECTIONS: dict[str, type[BaseSettings]] = {
    "agent": AgentSettings,
    "retry": RetrySettings,
    "deep_search": DeepSearchSettings,
    "firecrawl": FirecrawlSettings,
    "server": ServerSettings,
}


def load_settings() -> AppSettings:
    """Load settings with file config as base, env vars overlay."""
    file_data = load_config_file()
    sections: dict[str, BaseSettings] = {}
    for name, section_cls in SECTIONS.items():
        file_section = file_data.get(name)
        if not isinstance(file_section, dict):
            continue
        # Only values actually present in the environment are "set"
        env_values = section_cls().model_dump(exclude_unset=True)
        sections[name] = section_cls(**{**file_section, **env_values})
    return AppSettings(**sections)


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Process-wide settings for entry points (server, CLI)."""
    return load_settings()
