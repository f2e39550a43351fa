"""CLI interface for the Gemini research MCP server."""

import asyncio
import json

import typer

from .config import get_settings
from .exceptions import WorkspaceError
from .research import ResearchService

app = typer.Typer(help="Web research CLI powered by the Gemini CLI agent")


def _prepared_service() -> ResearchService:
    from .server import startup

    settings = get_settings()
    try:
        startup(settings)
    except WorkspaceError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    return ResearchService(settings)


def _emit(result) -> None:
    print(json.dumps(result.model_dump(exclude_none=True), indent=2))
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def search(
    query: str = typer.Argument(..., help="Question or search query"),
) -> None:
    """Run a single-round web search."""
    service = _prepared_service()
    _emit(asyncio.run(service.search(query)))


@app.command("deep-search")
def deep_search(
    topic: str = typer.Argument(..., help="Topic to research"),
    max_iterations: int = typer.Option(None, "--max-iterations", "-n", help="Maximum number of rounds"),
) -> None:
    """Run a multi-round deep search with verification."""
    service = _prepared_service()
    _emit(asyncio.run(service.deep_search(topic, max_iterations=max_iterations)))


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = get_settings()
    print(f"Config Dir: {settings.config_dir}")
    print(f"Command: {settings.agent.command}")
    print(f"Model: {settings.agent.model or '(auto-select)'}")
    print(f"Correction Model: {settings.agent.correction_model or '(same as research)'}")
    print(f"Timeout: {settings.agent.timeout:g}s")
    print(f"Max Retries: {settings.retry.max_retries}")
    print(f"Max Iterations: {settings.deep_search.max_iterations}")
    print(f"Firecrawl: {'enabled' if settings.firecrawl.enabled else 'disabled'}")
    print(f"Transport: {settings.server.transport}")


@app.command()
def server() -> None:
    """Run the MCP server with the configured transport."""
    from .server import main

    main()


if __name__ == "__main__":
    app()
