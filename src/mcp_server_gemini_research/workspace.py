"""Config directory bootstrap for the agent's working directory."""

import json
import logging
from typing import Any

from .agent.correction import sweep_correction_artifacts
from .config import AppSettings
from .exceptions import WorkspaceError

logger = logging.getLogger(__name__)


def build_gemini_settings(settings: AppSettings) -> dict[str, Any]:
    """Gemini CLI settings.json content for the current Firecrawl configuration."""
    firecrawl = settings.firecrawl
    if not firecrawl.enabled:
        return {"mcpServers": {}}

    return {
        "mcpServers": {
            "firecrawl": {
                "command": "npx",
                "args": ["-y", "firecrawl-mcp"],
                "env": {
                    "FIRECRAWL_API_KEY": firecrawl.api_key.get_secret_value() if firecrawl.api_key else "",
                    "FIRECRAWL_API_URL": firecrawl.api_url or "",
                    "HTTP_STREAMABLE_SERVER": "true",
                },
            },
        },
    }


def _needs_regeneration(settings: AppSettings) -> bool:
    path = settings.gemini_settings_path
    if not path.exists():
        return True
    try:
        existing = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.debug("Could not read existing settings, regenerating")
        return True
    servers = existing.get("mcpServers") if isinstance(existing, dict) else None
    has_firecrawl = isinstance(servers, dict) and "firecrawl" in servers
    if has_firecrawl != settings.firecrawl.enabled:
        logger.debug("Firecrawl configuration changed, regenerating settings.json")
        return True
    return False


def ensure_workspace(settings: AppSettings) -> None:
    """Create the config directory and the agent's ``.gemini/settings.json``.

    The file is (re)written when missing, unreadable, or when Firecrawl
    credentials were added or removed since it was generated.

    Raises:
        WorkspaceError: If the directory or file cannot be written.
    """
    logger.debug(f"Ensuring config directory exists: {settings.config_dir}")
    logger.debug(f"Firecrawl MCP {'enabled' if settings.firecrawl.enabled else 'disabled (no credentials provided)'}")
    try:
        settings.gemini_settings_path.parent.mkdir(parents=True, exist_ok=True)
        if _needs_regeneration(settings):
            content = json.dumps(build_gemini_settings(settings), indent=2)
            settings.gemini_settings_path.write_text(content, encoding="utf-8")
            logger.debug(f"Generated Gemini CLI settings at: {settings.gemini_settings_path}")
        else:
            logger.debug("Gemini CLI settings.json already exists, using existing configuration")
    except OSError as e:
        raise WorkspaceError(
            f"Failed to create config directory at {settings.config_dir}. Please check permissions and try again. ({e})"
        ) from e


def prepare_workspace(settings: AppSettings) -> None:
    """Startup routine: ensure the workspace, then sweep orphaned correction artifacts."""
    ensure_workspace(settings)
    sweep_correction_artifacts(settings.config_dir)
