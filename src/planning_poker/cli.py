"""Command-line interface for the Planning Poker server."""

from __future__ import annotations

import sys
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .decks import DECKS

app = typer.Typer(
    name="planning-poker",
    help="A real-time Planning Poker server for collaborative estimation.",
    add_completion=False,
)

console = Console()


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Set up structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, console)
    """
    import logging

    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format.lower() == "console":
        # Rich console logging for development
        structlog.configure(
            processors=[*shared_processors, structlog.dev.ConsoleRenderer(colors=True)],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        logging.basicConfig(
            format="%(message)s",
            level=level,
            handlers=[RichHandler(console=console, rich_tracebacks=True)],
            force=True,
        )
    else:
        # JSON logging for production
        structlog.configure(
            processors=[*shared_processors, structlog.processors.JSONRenderer()],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        logging.basicConfig(format="%(message)s", level=level, stream=sys.stdout, force=True)


@app.command()  # type: ignore[misc]
def version() -> None:
    """Show version information."""
    console.print(f"Planning Poker v{__version__}")


@app.command()  # type: ignore[misc]
def decks() -> None:
    """List the built-in card decks."""
    table = Table(title="Decks")
    table.add_column("Deck")
    table.add_column("Values")
    for deck in DECKS.values():
        table.add_row(deck.deck_type, " ".join(deck.values))
    console.print(table)


@app.command()  # type: ignore[misc]
def server(
    host: str | None = typer.Option(
        None,
        "--host",
        "-h",
        help="Host to bind the server to (defaults to SERVER_HOST)",
    ),
    port: int | None = typer.Option(
        None,
        "--port",
        "-p",
        help="Port to bind the server to (defaults to SERVER_PORT)",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file (.env format)",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (defaults to LOG_LEVEL)",
        case_sensitive=False,
    ),
    log_format: str | None = typer.Option(
        None,
        "--log-format",
        "-f",
        help="Log format, console or json (defaults to LOG_FORMAT)",
        case_sensitive=False,
    ),
) -> None:
    """Run the Planning Poker HTTP and Socket.IO server."""
    import uvicorn

    from .config import Config
    from .container import Container
    from .fastapi_app import create_asgi_app

    try:
        config = Config(_env_file=config_file) if config_file else Config()
    except Exception as e:
        console.print(f"❌ [red]Invalid configuration:[/red] {e}")
        sys.exit(1)

    setup_logging(log_level or config.log_level, log_format or config.log_format)
    logger = structlog.get_logger(__name__)

    bind_host = host or config.server_host
    bind_port = port or config.server_port

    try:
        logger.info("Starting Planning Poker server", host=bind_host, port=bind_port)
        uvicorn.run(
            create_asgi_app(Container(config)),
            host=bind_host,
            port=bind_port,
            log_level=(log_level or config.log_level).lower(),
        )
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        console.print("\n👋 Server stopped gracefully")
        sys.exit(0)
    except Exception as e:
        logger.error("Failed to start server", error=str(e))
        console.print(f"❌ [red]Error:[/red] {e}")
        sys.exit(1)


@app.command()  # type: ignore[misc]
def init_config(
    output: Path = typer.Option(
        Path(".env"),
        "--output",
        "-o",
        help="Output file path for configuration template",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration file",
    ),
) -> None:
    """Generate a configuration file template."""

    if output.exists() and not force:
        console.print(f"❌ Configuration file {output} already exists. Use --force to overwrite.")
        sys.exit(1)

    config_template = """# Planning Poker Configuration

# Server settings (optional)
SERVER_HOST=127.0.0.1
SERVER_PORT=8000
# PUBLIC_BASE_URL=https://poker.example.com
CORS_ORIGINS_STR=*

# Room defaults (optional): FIBONACCI, LINEAR or TSHIRT
DEFAULT_DECK=FIBONACCI

# Leave the room when a client's socket drops (optional)
LEAVE_ON_DISCONNECT=true

# Logging (optional)
LOG_LEVEL=INFO
LOG_FORMAT=console
"""

    try:
        output.write_text(config_template)
        console.print(f"✅ Configuration template written to {output}")
    except Exception as e:
        console.print(f"❌ [red]Error writing config file:[/red] {e}")
        sys.exit(1)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
