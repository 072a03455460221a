"""
This file is the entry point for the 'gw1h' command-line tool.
Run 'gw1h' in your shell to launch Guild Wars and/or GWToolbox under wine.

Roles are selected with GW1H_GW / GW1H_TOOLBOX (presence) or the
--gw/--toolbox flags, which take precedence when given.
"""
import asyncio
import json
import logging
from typing import Annotated, Optional

import typer

from common.app_setup import parse_log_level, print_and_log, setup_logging
from gw1h import __version__
from gw1h.cancellation import CancellationToken, install_interrupt_handler
from gw1h.discovery import PidDiscovery
from gw1h.errors import Gw1hError, RunCancelled
from gw1h.orchestrator import Orchestrator, run_with_interrupts
from gw1h.processes import ProcessSpawner
from gw1h.report import EXIT_INTERRUPTED
from gw1h.settings import Settings
from gw1h.wine_env import wine_env, wine_vars

app = typer.Typer(add_completion=False, help="Launch Guild Wars and GWToolbox under wine. If no command is given, run is assumed.")

logger = logging.getLogger("gw1h")


def _load_settings(gw: Optional[bool] = None, toolbox: Optional[bool] = None,
                   gw_pid: Optional[str] = None) -> Settings:
    try:
        settings = Settings.from_env().with_overrides(primary=gw, dependent=toolbox, gw_pid=gw_pid)
    except Gw1hError as exc:
        setup_logging(app_name="gw1h")
        logger.error(str(exc))
        raise typer.Exit(exc.exit_code)
    setup_logging(app_name="gw1h", loglevel=parse_log_level(settings.log_level),
                  logfile=settings.log_file, add_source=settings.log_source,
                  log_format=settings.log_format)
    return settings


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@app.command()
def run(
    gw: Annotated[Optional[bool], typer.Option("--gw/--no-gw", help="Start Guild Wars (default: GW1H_GW is set)")] = None,
    toolbox: Annotated[Optional[bool], typer.Option("--toolbox/--no-toolbox", help="Start GWToolbox (default: GW1H_TOOLBOX is set)")] = None,
    gw_pid: Annotated[Optional[str], typer.Option(help="Wine pid of a running gw, for toolbox-only runs (default: GW1H_GW_PID)")] = None,
):
    """Start the selected roles and wait until all of them have exited."""
    settings = _load_settings(gw, toolbox, gw_pid)
    logger.info("gw1h started", extra={"version": __version__})
    try:
        report = asyncio.run(run_with_interrupts(Orchestrator(settings)))
    finally:
        logger.info("gw1h stopped")
    for failure in report.failures:
        logger.debug("reported failure", extra={"role": failure.role, "err": str(failure.error)})
    raise typer.Exit(report.exit_code)


@app.command()
def discover():
    """Only run pid discovery against an already running gw and print its wine pid."""
    settings = _load_settings()
    try:
        pid = asyncio.run(_discover(settings))
    except Gw1hError as exc:
        logger.error("pid discovery failed", extra={"err": str(exc)})
        raise typer.Exit(exc.exit_code)
    except RunCancelled:
        raise typer.Exit(EXIT_INTERRUPTED)
    print_and_log(str(pid))


async def _discover(settings: Settings) -> int:
    token = CancellationToken()
    uninstall = install_interrupt_handler(token)
    try:
        return await PidDiscovery(ProcessSpawner(), wine_env(settings), token).discover()
    finally:
        uninstall()


@app.command()
def env():
    """Print the wine variables gw1h adds to the environment of every process it starts."""
    settings = _load_settings()
    print_and_log(json.dumps(wine_vars(settings)))


@app.command()
def version():
    """Print the gw1h version."""
    print_and_log(__version__)


if __name__ == "__main__":
    app()
