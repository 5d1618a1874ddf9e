"""gesture-analyzer CLI entrypoint."""

from __future__ import annotations

import asyncio
import json
import mimetypes
import sys
from pathlib import Path

import typer

from .api import build_backend
from .backends.base import AnalysisBackend
from .errors import ConfigurationError, MalformedResponseError
from .pipeline import analyze_file
from .settings import Settings, get_settings
from .util.logging import get_logger, set_level

app = typer.Typer(add_completion=False)
logger = get_logger(__name__)


def instantiate_backend(settings: Settings) -> AnalysisBackend:
    """Instantiate the Gemini backend with credentials sourced from settings."""
    backend = build_backend(settings)
    if backend is None:
        raise ConfigurationError("GOOGLE_AI_API_KEY is required for video analysis.")
    return backend


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload for development"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "gesture_analyzer.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@app.command()
def analyze(
    input: Path = typer.Option(..., "--input", exists=True, dir_okay=False, readable=True),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Detect gestures in a local video file and print the JSON result."""
    if verbose:
        set_level("DEBUG")
    settings = get_settings()

    try:
        backend = instantiate_backend(settings)
        mime_type, _ = mimetypes.guess_type(input.name)
        result = asyncio.run(
            analyze_file(backend, input, settings, mime_type=mime_type, display_name=input.name)
        )
    except MalformedResponseError as exc:
        typer.secho(f"Analysis failed: {exc}", err=True, fg=typer.colors.RED)
        typer.echo(exc.raw_text, err=True)
        raise typer.Exit(code=1)
    except Exception as exc:  # noqa: BLE001
        typer.secho(f"Analysis failed: {exc}", err=True, fg=typer.colors.RED)
        logger.exception("Analysis error")
        raise typer.Exit(code=1)

    typer.echo(json.dumps(result, indent=2))


if __name__ == "__main__":
    sys.exit(app())
