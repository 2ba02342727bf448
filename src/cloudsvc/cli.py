"""Root CLI command for cloudsvc: load settings, build the logger, serve."""

from __future__ import annotations

import asyncio

import click

from cloudsvc import __version__
from cloudsvc.config.logging import build_logger
from cloudsvc.config.settings import DEFAULT_CONFIG_PATH, ServiceSettings
from cloudsvc.errors import LoggingConfigError, SettingsError
from cloudsvc.output.console import render_outcome
from cloudsvc.runtime.service import run_service


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="cloudsvc")
@click.option(
    "-c",
    "--config",
    "config_path",
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help="Path to the TOML settings file.",
)
def cli(config_path: str) -> None:
    """Run the cloudsvc HTTP service until SIGINT or SIGTERM."""
    try:
        settings = ServiceSettings.from_file(config_path)
    except SettingsError as exc:
        raise click.ClickException(f"error load from config: {exc}") from exc

    try:
        logger = build_logger(
            settings.service.name,
            level=settings.logger.level,
            output=settings.logger.output,
            gcp=settings.gcp,
        )
    except LoggingConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    outcome = asyncio.run(run_service(logger))
    click.echo(render_outcome(outcome), err=True)
    if not outcome.ok:
        raise SystemExit(outcome.exit_code)


def main() -> None:
    cli()
