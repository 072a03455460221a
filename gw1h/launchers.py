"""
launchers.py
------------
The two roles of a run.

PrimaryLauncher starts Guild Wars, gives it WARMUP_SECONDS to come up, then
discovers its wine pid and hands it off while still watching the client.
DependentLauncher waits (at most HANDOFF_TIMEOUT_SECONDS) for that pid, or
takes it from GW1H_GW_PID when gw is not part of the run, and starts
GWToolbox attached to it.

Each launcher reports its own failures to the RunReport and decides,
through the error type, whether the whole run has to be cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Mapping, Optional

from gw1h.cancellation import CancellationToken
from gw1h.discovery import PidDiscovery
from gw1h.errors import (
    ConfigurationError,
    Gw1hError,
    HandoffTimeoutError,
    ProcessExitError,
    RunCancelled,
    SpawnError,
)
from gw1h.handoff import PidHandoff
from gw1h.processes import RunningProcess, Spawner
from gw1h.report import RunReport
from gw1h.settings import Settings

logger = logging.getLogger(__name__)

WARMUP_SECONDS = 3.0
HANDOFF_TIMEOUT_SECONDS = 10.0


class Launcher(ABC):
    """Shared plumbing: spawning, failure reporting and cancellation-aware exit waits."""

    role = "?"

    def __init__(self, settings: Settings, spawner: Spawner, env: Mapping[str, str],
                 token: CancellationToken, handoff: PidHandoff, report: RunReport):
        self.settings = settings
        self.spawner = spawner
        self.env = env
        self.token = token
        self.handoff = handoff
        self.report = report

    def fail(self, error: Gw1hError, cancel: Optional[bool] = None) -> None:
        """Log and record ``error``; trigger cancellation if the error dooms the run."""
        logger.error(f"{self.role} failed", extra={"role": self.role, "err": str(error)})
        self.report.add(self.role, error)
        if error.cancels_run if cancel is None else cancel:
            self.token.trigger(f"{self.role}: {error}")

    async def spawn(self, argv: list[str]) -> Optional[RunningProcess]:
        try:
            handle = await self.spawner.spawn(self.role, argv, self.env)
        except SpawnError as exc:
            self.fail(exc)
            return None
        logger.info(f"{self.role} started", extra={"role": self.role, "pid": handle.pid})
        return handle

    async def await_exit(self, handle: RunningProcess, exit_task: asyncio.Future) -> int:
        """
        Wait for ``handle`` to exit. If the run is cancelled first, ask it to
        terminate and keep waiting. An abnormal exit that we did not cause is
        reported but never cancels the run.
        """
        if exit_task.done():
            returncode = exit_task.result()
        else:
            try:
                returncode = await self.token.guard(asyncio.shield(exit_task))
            except RunCancelled as exc:
                logger.info(f"{self.role} stopping", extra={"role": self.role, "pid": handle.pid, "reason": exc.reason})
                await handle.terminate()
                returncode = await exit_task

        if returncode == 0:
            logger.info(f"{self.role} exited", extra={"role": self.role, "pid": handle.pid})
        elif handle.terminate_requested:
            logger.info(f"{self.role} stopped", extra={"role": self.role, "pid": handle.pid, "status": returncode})
        else:
            self.fail(ProcessExitError(self.role, returncode), cancel=False)
        return returncode

    @abstractmethod
    async def run(self) -> Optional[int]:
        """Start the role and wait for it. Return its exit status, or None if it never started."""


class PrimaryLauncher(Launcher):
    """Starts gw, discovers its pid and waits for it to exit."""

    role = "gw"

    def __init__(self, *args, discovery: Optional[PidDiscovery] = None,
                 warmup: float = WARMUP_SECONDS, **kwargs):
        super().__init__(*args, **kwargs)
        self.discovery = discovery or PidDiscovery(self.spawner, self.env, self.token)
        self.warmup = warmup

    def command(self) -> list[str]:
        return [self.settings.wine, self.settings.gw_exe]

    async def run(self) -> Optional[int]:
        """Return gw's exit status, or None if it never started."""
        handle = await self.spawn(self.command())
        if handle is None:
            return None
        exit_task = asyncio.ensure_future(handle.wait())
        try:
            initialized = await self._initialize(exit_task)
        except asyncio.CancelledError:
            await handle.terminate()
            raise
        if not initialized:
            return exit_task.result()
        return await self.await_exit(handle, exit_task)

    async def _initialize(self, exit_task: asyncio.Future) -> bool:
        """
        Warm up then discover the pid, concurrently with watching gw.
        Returns False if gw exited before discovery finished; only a nonzero
        exit at that point is a failure, and it cancels the run.
        """
        discovery = asyncio.ensure_future(self._discover())
        try:
            done, _ = await asyncio.wait({discovery, exit_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            discovery.cancel()
            raise

        if discovery not in done:
            discovery.cancel()
            await asyncio.gather(discovery, return_exceptions=True)
            returncode = exit_task.result()
            if returncode == 0:
                logger.info(f"{self.role} exited before its pid was discovered",
                            extra={"role": self.role, "status": returncode})
                return False
            error = ProcessExitError(self.role, returncode, "exited before its pid was discovered")
            self.fail(error, cancel=True)
            return False

        try:
            discovery.result()
        except RunCancelled as exc:
            logger.info("pid discovery abandoned", extra={"role": self.role, "reason": exc.reason})
        except ProcessExitError as exc:
            self.fail(exc, cancel=True)
        except Gw1hError as exc:
            self.fail(exc)
        return True

    async def _discover(self) -> int:
        logger.debug("waiting for gw to initialize", extra={"role": self.role, "seconds": self.warmup})
        await self.token.sleep(self.warmup)
        return await self.discovery.run(self.handoff)


class DependentLauncher(Launcher):
    """Starts toolbox attached to the gw pid."""

    role = "toolbox"

    def __init__(self, *args, handoff_timeout: float = HANDOFF_TIMEOUT_SECONDS, **kwargs):
        super().__init__(*args, **kwargs)
        self.handoff_timeout = handoff_timeout

    def command(self, gw_pid: int) -> list[str]:
        return [self.settings.wine, self.settings.toolbox_exe, "/pid", str(gw_pid)]

    async def resolve_pid(self) -> int:
        """
        The pid toolbox attaches to: GW1H_GW_PID when gw is not started by
        this run, otherwise whatever the primary hands off first.
        """
        if not self.settings.roles.primary:
            pid = self.settings.preset_pid()
            logger.info("using preset gw pid", extra={"role": self.role, "pid": pid})
            return pid
        try:
            return await asyncio.wait_for(self.token.guard(self.handoff.receive()),
                                          timeout=self.handoff_timeout)
        except asyncio.TimeoutError:
            raise HandoffTimeoutError(self.handoff_timeout) from None

    async def run(self) -> Optional[int]:
        """Return toolbox's exit status, or None if it was never started."""
        try:
            gw_pid = await self.resolve_pid()
        except (ConfigurationError, HandoffTimeoutError) as exc:
            self.fail(exc)
            return None
        except RunCancelled as exc:
            logger.info(f"{self.role} not started", extra={"role": self.role, "reason": exc.reason})
            return None

        if self.token.triggered:
            logger.info(f"{self.role} not started", extra={"role": self.role, "reason": self.token.reason})
            return None
        handle = await self.spawn(self.command(gw_pid))
        if handle is None:
            return None
        return await self.await_exit(handle, asyncio.ensure_future(handle.wait()))


__all__ = [
    "DependentLauncher",
    "HANDOFF_TIMEOUT_SECONDS",
    "Launcher",
    "PrimaryLauncher",
    "WARMUP_SECONDS",
]
