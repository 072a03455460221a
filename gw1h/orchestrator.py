"""Fans out the selected launchers and joins them."""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Optional

from gw1h.cancellation import CancellationToken, install_interrupt_handler
from gw1h.errors import ConfigurationError
from gw1h.handoff import PidHandoff
from gw1h.launchers import DependentLauncher, Launcher, PrimaryLauncher
from gw1h.processes import ProcessSpawner, Spawner
from gw1h.report import RunReport
from gw1h.settings import Settings
from gw1h.wine_env import wine_env

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    One run: start a task per selected role and wait for all of them.

    ``primary_options`` and ``dependent_options`` are passed through to the
    launcher constructors.
    """

    def __init__(self, settings: Settings, spawner: Optional[Spawner] = None,
                 env: Optional[Mapping[str, str]] = None, token: Optional[CancellationToken] = None,
                 primary_options: Optional[dict] = None, dependent_options: Optional[dict] = None):
        self.settings = settings
        self.spawner = spawner or ProcessSpawner()
        self.env = dict(env) if env is not None else wine_env(settings)
        self.token = token or CancellationToken()
        self.handoff = PidHandoff()
        self.report = RunReport()
        self.primary_options = primary_options or {}
        self.dependent_options = dependent_options or {}

    def launchers(self) -> list[Launcher]:
        roles = self.settings.roles
        common = dict(settings=self.settings, spawner=self.spawner, env=self.env,
                      token=self.token, handoff=self.handoff, report=self.report)
        selected: list[Launcher] = []
        if roles.primary:
            selected.append(PrimaryLauncher(**common, **self.primary_options))
        if roles.dependent:
            selected.append(DependentLauncher(**common, **self.dependent_options))
        return selected

    async def run(self) -> RunReport:
        roles = self.settings.roles
        if not roles.any:
            error = ConfigurationError("Set 'GW1H_GW' or 'GW1H_TOOLBOX' to start")
            logger.error(str(error))
            self.report.add("gw1h", error)
            return self.report

        logger.info("launching", extra={"roles": roles.describe()})
        tasks = [asyncio.ensure_future(launcher.run()) for launcher in self.launchers()]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                # Launchers report their own failures; anything else is a bug.
                logger.error("launcher crashed", exc_info=result, extra={"err": repr(result)})
                raise result

        self.report.interrupted = self.token.reason == "interrupt"
        return self.report


async def run_with_interrupts(orchestrator: Orchestrator) -> RunReport:
    """Run ``orchestrator`` with the single-shot SIGINT handler installed."""
    uninstall = install_interrupt_handler(orchestrator.token)
    try:
        return await orchestrator.run()
    finally:
        uninstall()


__all__ = ["Orchestrator", "run_with_interrupts"]
