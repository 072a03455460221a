"""
processes.py
------------
Starting and stopping the external processes gw1h manages.

ProcessSpawner wraps asyncio subprocesses; the handles it returns are owned
by exactly one launcher, which awaits them and, on cancellation, asks them
to terminate. Termination walks the process tree with psutil because wine
re-parents the real Windows program under its own loader processes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Mapping, Optional, Protocol, Sequence

import psutil

from gw1h.errors import SpawnError

logger = logging.getLogger(__name__)

TERMINATE_GRACE_SECONDS = 5.0


class RunningProcess(Protocol):
    """Interface of a started external process."""

    @property
    def pid(self) -> int: ...
    @property
    def role(self) -> str: ...
    @property
    def returncode(self) -> Optional[int]: ...
    @property
    def terminate_requested(self) -> bool: ...
    async def wait(self) -> int: ...
    async def terminate(self, grace: float = TERMINATE_GRACE_SECONDS) -> None: ...
    def lines(self) -> AsyncIterator[str]: ...


class Spawner(Protocol):
    """Starts external processes. Raises SpawnError when a process cannot be started."""

    async def spawn(self, role: str, argv: Sequence[str], env: Mapping[str, str], *,
                    capture_stdout: bool = False) -> RunningProcess: ...


class ProcessHandle:
    """A started asyncio subprocess plus the role it plays in the run."""

    def __init__(self, proc: asyncio.subprocess.Process, argv: Sequence[str], role: str):
        self._proc = proc
        self.argv = list(argv)
        self._role = role
        self._terminate_requested = False

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def role(self) -> str:
        return self._role

    @property
    def returncode(self) -> Optional[int]:
        return self._proc.returncode

    @property
    def terminate_requested(self) -> bool:
        return self._terminate_requested

    async def wait(self) -> int:
        """Wait for exit. Negative return codes mean death by signal."""
        return await self._proc.wait()

    async def lines(self) -> AsyncIterator[str]:
        """Decoded stdout lines, without line terminators. Only for captured processes."""
        if self._proc.stdout is None:
            raise RuntimeError(f"stdout of {self._role} was not captured")
        async for raw in self._proc.stdout:
            yield raw.decode(errors="replace").rstrip("\r\n")

    async def terminate(self, grace: float = TERMINATE_GRACE_SECONDS) -> None:
        """SIGTERM the process and its descendants, SIGKILL whatever is left after ``grace`` seconds."""
        if self._proc.returncode is not None:
            return
        self._terminate_requested = True
        try:
            children = psutil.Process(self.pid).children(recursive=True)
        except psutil.NoSuchProcess:
            children = []

        logger.info(f"terminating {self._role}",
                    extra={"role": self._role, "pid": self.pid, "children": [c.pid for c in children]})
        for child in children:
            try:
                child.terminate()
            except psutil.NoSuchProcess:
                continue
        try:
            self._proc.terminate()
        except ProcessLookupError:
            pass

        try:
            await asyncio.wait_for(self._proc.wait(), timeout=grace)
        except asyncio.TimeoutError:
            logger.warning(f"{self._role} did not terminate within {grace}s; sending SIGKILL",
                           extra={"role": self._role, "pid": self.pid})
            try:
                self._proc.kill()
            except ProcessLookupError:
                pass
            await self._proc.wait()

        if children:
            _, alive = await asyncio.to_thread(psutil.wait_procs, children, timeout=grace)
            for child in alive:
                logger.warning(f"{self._role} child survived SIGTERM; sending SIGKILL",
                               extra={"role": self._role, "pid": child.pid})
                try:
                    child.kill()
                except psutil.NoSuchProcess:
                    continue

    def __repr__(self) -> str:
        return f"<ProcessHandle role={self._role} pid={self.pid} returncode={self.returncode}>"


class ProcessSpawner:
    """Spawner backed by asyncio.create_subprocess_exec.

    Child stdout and stderr are inherited unless stdout is captured.
    """

    async def spawn(self, role: str, argv: Sequence[str], env: Mapping[str, str], *,
                    capture_stdout: bool = False) -> ProcessHandle:
        if not argv:
            raise SpawnError([], "empty command line")
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                env=dict(env),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE if capture_stdout else None,
            )
        except OSError as exc:
            raise SpawnError(list(argv), exc) from exc
        logger.debug(f"{role} started", extra={"role": role, "pid": proc.pid, "argv": list(argv)})
        return ProcessHandle(proc, argv, role)


__all__ = ["ProcessHandle", "ProcessSpawner", "RunningProcess", "Spawner", "TERMINATE_GRACE_SECONDS"]
