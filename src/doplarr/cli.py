"""Doplarr CLI."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from loguru import logger

from doplarr.app import ExitCode, run_app
from doplarr.config import DEFAULT_CONFIG_FILE, load_settings
from doplarr.errors import ConfigurationError
from doplarr.logging_utils import configure_logging

app = typer.Typer(name="doplarr", help="Request movies and series from Discord", add_completion=False)


@app.command()
def run(
    config_file: Path = typer.Argument(DEFAULT_CONFIG_FILE, help="Path to the TOML config file"),  # noqa: B008
) -> None:
    """Start the bot."""

    configure_logging()
    try:
        settings = load_settings(config_file)
    except ConfigurationError as exc:
        logger.error("cli.config.invalid error={}", exc)
        raise typer.Exit(int(ExitCode.CONFIGURATION)) from exc

    configure_logging(settings.log_level)
    logger.info("cli.start config={} kinds={}", config_file, [backend.media.value for backend in settings.backends])
    try:
        code = asyncio.run(run_app(settings))
    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        code = ExitCode.OK
    raise typer.Exit(int(code))


if __name__ == "__main__":
    app()
