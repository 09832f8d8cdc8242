"""CLI entry point for psh."""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path

import typer

from psh import __version__
from psh.bootstrap import bootstrap
from psh.config import PshConfig
from psh.errors import ConfigError
from psh.repl.line import OutputPump, run_line
from psh.shell.spec import describe_spec

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="psh",
    help="One prompt in front of many local and remote shells.",
    no_args_is_help=True,
)


def setup_logging(
    verbose: bool = False, log_file: Path | None = None, level: str = "INFO"
) -> None:
    """Send psh's log to ``log_file`` so it never mixes with session output."""
    root_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            logging.basicConfig(
                level=root_level, format=fmt, datefmt="%H:%M:%S", filename=str(log_file)
            )
            return
        except OSError as exc:
            typer.echo(f"Warning: cannot write log file {log_file}: {exc}", err=True)
    logging.basicConfig(level=root_level, format=fmt, datefmt="%H:%M:%S")


def _load_config(config_file: str | None) -> PshConfig:
    try:
        return PshConfig.load(config_file)
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)


async def _run_repl(config: PshConfig, cols: int, rows: int) -> None:
    pump = OutputPump()
    parts = await bootstrap(config, cols, rows, listeners=[pump.attach])
    logger.info("psh %s ready, default shell %s", __version__, parts.default_shell)
    await run_line(parts.router, config.repl.prompt, pump)


@app.command()
def run(
    cols: int | None = typer.Option(
        None, "--cols", min=1, help="Terminal width for new sessions (default: detected)."
    ),
    rows: int | None = typer.Option(
        None, "--rows", min=1, help="Terminal height for new sessions (default: detected)."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path (default: $PSH_CONFIG or ~/.psh/config.json)."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
) -> None:
    """Start the interactive prompt."""
    config = _load_config(config_file)
    setup_logging(verbose, config.logging.path, config.logging.level)

    size = shutil.get_terminal_size()
    cols = cols or size.columns
    rows = rows or size.lines
    logger.info("Starting psh (%dx%d)", cols, rows)

    asyncio.run(_run_repl(config, cols, rows))


@app.command()
def shells(
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """List the shells the config registers at startup."""
    config = _load_config(config_file)
    catalog = config.shells.catalog
    if not catalog:
        typer.echo("No shells configured")
    for name in sorted(catalog):
        typer.echo(f"  {name}: {describe_spec(catalog[name])}")
    default = config.shells.default_shell
    typer.echo(f"default shell: {default}" if default else "default shell: (login shell)")


@app.command()
def version() -> None:
    """Print the psh version."""
    typer.echo(f"psh v{__version__}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
