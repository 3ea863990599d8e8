"""Command-line interface for the whisper-server using Typer.

Features:
- ``serve`` command starting the OpenAI-compatible API with uvicorn.
- ``--version`` on the root command.
"""

from __future__ import annotations

from typing import Annotated

import typer

from whisper_server import __version__
from whisper_server.utils.constant import API_SERVER_NAME, API_SERVER_PORT, LOG_LEVEL
from whisper_server.utils.logging_config import configure_logging, get_logger

logger = get_logger(__name__)


def version_callback(value: bool) -> None:
    """Show the application's version and exit.

    Raises:
        typer.Exit: Always raised after printing when value is True.
    """
    if value:
        print(f"whisper-server version: {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="whisper-server",
    help="OpenAI Whisper API compatible transcription server with streaming output.",
    add_completion=False,
)


@app.callback(invoke_without_command=True)
def root(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show the application's version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Print help when no subcommand is given.

    Raises:
        typer.Exit: Raised to terminate after displaying help.
    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command()
def serve(
    host: Annotated[
        str,
        typer.Option("--host", help="Server hostname or IP address to bind to."),
    ] = API_SERVER_NAME,
    port: Annotated[
        int,
        typer.Option("--port", help="Server port number."),
    ] = API_SERVER_PORT,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug mode with verbose logging."),
    ] = False,
) -> None:
    """Start the transcription API server.

    Examples:
        # Listen on localhost:12017 (default):
        whisper-server serve

        # Listen on all interfaces:
        whisper-server serve --host 0.0.0.0 --port 8080
    """
    configure_logging(level="DEBUG" if debug else LOG_LEVEL)

    from whisper_server.api import create_app

    app_instance = create_app()
    logger.info("Starting whisper-server on %s:%d", host, port)

    import uvicorn

    uvicorn.run(
        app_instance,
        host=host,
        port=port,
        log_level="debug" if debug else "info",
    )


def main() -> None:
    """Run the CLI."""
    app()


if __name__ == "__main__":
    main()
