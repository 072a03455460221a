"""Single-slot hand-off of the discovered gw pid from the primary to the dependent launcher."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from gw1h.errors import HandoffError

logger = logging.getLogger(__name__)


class PidHandoff:
    """
    Write-once, read-once transfer point for the discovered pid.

    The primary launcher publishes, the dependent launcher receives. A
    second publish (or a second receive) is a bug and raises HandoffError.
    """

    def __init__(self) -> None:
        self._future: Optional[asyncio.Future] = None
        self._writes = 0
        self._received = False

    def _slot(self) -> asyncio.Future:
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
        return self._future

    @property
    def writes(self) -> int:
        return self._writes

    @property
    def filled(self) -> bool:
        return self._writes > 0

    def publish(self, pid: int) -> None:
        if self._writes:
            raise HandoffError(f"gw pid already published, refusing to publish {pid}")
        if pid <= 0:
            raise HandoffError(f"refusing to publish non-positive pid {pid}")
        self._slot().set_result(pid)
        self._writes += 1
        logger.debug("pid handed off", extra={"pid": pid})

    async def receive(self) -> int:
        if self._received:
            raise HandoffError("gw pid already received")
        self._received = True
        pid = await asyncio.shield(self._slot())
        logger.debug("received gw pid", extra={"pid": pid})
        return pid
