"""
cancellation.py
---------------
Run-wide cancellation signal shared by every launcher task.

A CancellationToken starts untriggered and moves to triggered exactly once.
Every blocking wait in gw1h goes through ``token.guard(...)`` so it unwinds
with RunCancelled as soon as the token fires. The token never kills
anything by itself: whoever owns a process terminates it after observing
the signal.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any, Awaitable, Callable, Optional, TypeVar

from gw1h.errors import RunCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation signal.

    ``trigger`` is idempotent: only the first call records its reason.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def triggered(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def trigger(self, reason: str = "cancelled") -> bool:
        """Fire the signal. Returns True only for the call that fired it."""
        if self._event.is_set():
            logger.debug("cancellation already triggered, ignoring", extra={"reason": reason})
            return False
        self._reason = reason
        self._event.set()
        logger.info("cancellation triggered", extra={"reason": reason})
        return True

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, aw: Awaitable[T]) -> T:
        """
        Await ``aw`` unless the token fires first.

        On cancellation the inner awaitable is cancelled and RunCancelled is
        raised. Wrap a task in ``asyncio.shield`` to keep it running past the
        cancellation. If the token is already triggered ``aw`` is never
        started.
        """
        if self.triggered:
            if asyncio.iscoroutine(aw):
                aw.close()
            raise RunCancelled(self._reason)

        inner = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({inner, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            inner.cancel()
            waiter.cancel()
            raise

        if inner in done:
            waiter.cancel()
            return inner.result()

        inner.cancel()
        await asyncio.gather(inner, return_exceptions=True)
        raise RunCancelled(self._reason)

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, raising RunCancelled if the token fires."""
        await self.guard(asyncio.sleep(delay))

    def __repr__(self) -> str:
        state = f"triggered reason={self._reason!r}" if self.triggered else "armed"
        return f"<CancellationToken {state}>"


def install_interrupt_handler(token: CancellationToken,
                              loop: Optional[asyncio.AbstractEventLoop] = None) -> Callable[[], None]:
    """
    Convert the first SIGINT into ``token.trigger("interrupt")``.

    The handler is single-shot: once it has fired it deregisters itself and
    puts SIGINT back to SIG_DFL, so a second Ctrl-C terminates the process
    without waiting for the graceful unwind.

    Returns a function that removes the handler if it is still installed.
    """
    loop = loop or asyncio.get_running_loop()
    state: dict[str, Any] = {"installed": True}

    def _uninstall() -> None:
        if state["installed"]:
            state["installed"] = False
            loop.remove_signal_handler(signal.SIGINT)

    def _on_interrupt() -> None:
        logger.warning("interrupt received, stopping (interrupt again to force exit)")
        _uninstall()
        signal.signal(signal.SIGINT, signal.SIG_DFL)
        token.trigger("interrupt")

    loop.add_signal_handler(signal.SIGINT, _on_interrupt)
    return _uninstall


__all__ = ["CancellationToken", "install_interrupt_handler"]
