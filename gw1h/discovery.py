"""
discovery.py
------------
Find the wine pid of the running Guild Wars client.

The diagnostic command lists wine processes and prints the hexadecimal pid
column of every line mentioning Gw.exe. Each output line is one candidate.
Exactly one candidate must come out of a clean diagnostic run, otherwise
discovery fails and the caller cancels the run: an ambiguous pid is never
guessed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterable, AsyncIterator, Mapping, Optional, Sequence

from gw1h.cancellation import CancellationToken
from gw1h.errors import DiscoveryCardinalityError, ProcessExitError, RunCancelled, StreamParseError
from gw1h.handoff import PidHandoff
from gw1h.processes import RunningProcess, Spawner

logger = logging.getLogger(__name__)

ROLE = "pid-discovery"

DIAGNOSTIC_COMMAND: tuple[str, ...] = (
    "bash", "-c",
    """winedbg --command "info process" | awk '/Gw\\.exe/ {print $1}'""",
)


def parse_candidate(line: str) -> int:
    """Parse one diagnostic line (a hexadecimal wine pid) into a positive int."""
    text = line.strip()
    try:
        pid = int(text, 16)
    except ValueError:
        raise StreamParseError(line) from None
    if pid <= 0:
        raise StreamParseError(line, "pid must be positive")
    return pid


async def read_candidates(lines: AsyncIterable[str]) -> AsyncIterator[int]:
    """Lazily turn diagnostic output lines into pids. Stops at the first unparsable line."""
    async for line in lines:
        pid = parse_candidate(line)
        logger.debug("detected gw pid", extra={"pid": pid, "raw": line.strip()})
        yield pid


def choose_identifier(candidates: Sequence[int]) -> int:
    """Apply the exactly-one policy to the complete candidate list."""
    if not candidates:
        raise DiscoveryCardinalityError(DiscoveryCardinalityError.NONE)
    if len(candidates) > 1:
        raise DiscoveryCardinalityError(DiscoveryCardinalityError.MULTIPLE, list(candidates))
    return candidates[0]


class PidDiscovery:
    """Runs the diagnostic command once and yields at most one pid."""

    def __init__(self, spawner: Spawner, env: Mapping[str, str], token: CancellationToken,
                 command: Optional[Sequence[str]] = None):
        self.spawner = spawner
        self.env = env
        self.token = token
        self.command = list(command or DIAGNOSTIC_COMMAND)

    async def discover(self) -> int:
        """
        Return the single discovered pid.

        Raises SpawnError, StreamParseError, DiscoveryCardinalityError or
        ProcessExitError on failure and RunCancelled if the token fires. The
        diagnostic process never outlives this call.
        """
        proc = await self.spawner.spawn(ROLE, self.command, self.env, capture_stdout=True)
        try:
            candidates, returncode = await self.token.guard(
                asyncio.gather(self._collect(proc), proc.wait())
            )
        except BaseException:
            await proc.terminate()
            raise

        if returncode != 0:
            raise ProcessExitError(ROLE, returncode, f"{len(candidates)} candidate(s) read before exit")
        pid = choose_identifier(candidates)
        logger.info("discovered gw pid", extra={"pid": pid})
        return pid

    async def run(self, handoff: PidHandoff) -> int:
        """Discover the pid and publish it for the dependent launcher."""
        pid = await self.discover()
        if self.token.triggered:
            raise RunCancelled(self.token.reason)
        handoff.publish(pid)
        return pid

    @staticmethod
    async def _collect(proc: RunningProcess) -> list[int]:
        return [pid async for pid in read_candidates(proc.lines())]


__all__ = [
    "DIAGNOSTIC_COMMAND",
    "PidDiscovery",
    "choose_identifier",
    "parse_candidate",
    "read_candidates",
]
