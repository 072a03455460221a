"""Exceptions raised by the gw1h launch core.

Every reportable failure derives from :class:`Gw1hError` and carries the
process exit status the run ends with when it is the first failure
reported. ``cancels_run`` tells the launchers whether the failure dooms the
other role as well.
"""

from __future__ import annotations


class Gw1hError(Exception):
    """Base class for reportable gw1h failures."""

    exit_code = 1
    cancels_run = False


class ConfigurationError(Gw1hError):
    """No role selected, an invalid GW1H_* value, or a dependent-only run without a usable GW1H_GW_PID."""

    exit_code = 8


class SpawnError(Gw1hError):
    """An external process could not be started."""

    exit_code = 3
    cancels_run = True

    def __init__(self, argv: list[str], cause: BaseException | str):
        self.argv = list(argv)
        self.cause = cause
        super().__init__(f"failed to start {self.argv[0] if self.argv else '?'}: {cause}")


class StreamParseError(Gw1hError):
    """A line of diagnostic output is not a valid process identifier."""

    exit_code = 4
    cancels_run = True

    def __init__(self, line: str, reason: str = "not a hexadecimal pid"):
        self.line = line
        super().__init__(f"cannot parse pid from {line!r}: {reason}")


class DiscoveryCardinalityError(Gw1hError):
    """Discovery found no candidate, or more than one."""

    exit_code = 5
    cancels_run = True

    NONE = "none"
    MULTIPLE = "multiple"

    def __init__(self, kind: str, candidates: list[int] | None = None):
        if kind not in (self.NONE, self.MULTIPLE):
            raise ValueError(f"unknown cardinality kind: {kind!r}")
        self.kind = kind
        self.candidates = list(candidates or [])
        if kind == self.NONE:
            message = "no gw pids found"
        else:
            message = f"multiple gw pids found: {self.candidates}"
        super().__init__(message)


class HandoffTimeoutError(Gw1hError):
    """The dependent launcher gave up waiting for the discovered pid."""

    exit_code = 6

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"timeout waiting for gw pid after {timeout:g}s")


class ProcessExitError(Gw1hError):
    """A started process terminated abnormally while it was awaited."""

    exit_code = 7

    def __init__(self, role: str, returncode: int, detail: str = ""):
        self.role = role
        self.returncode = returncode
        message = f"{role} exited with status {returncode}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class HandoffError(Gw1hError):
    """The hand-off slot was used twice. Indicates a bug, never user error."""


class RunCancelled(Exception):
    """Raised out of a guarded wait once the cancellation token fires.

    Not a failure: it only unwinds the task that observed the signal.
    """

    def __init__(self, reason: str | None = None):
        self.reason = reason
        super().__init__(f"run cancelled ({reason or 'unknown reason'})")


__all__ = [
    "ConfigurationError",
    "DiscoveryCardinalityError",
    "Gw1hError",
    "HandoffError",
    "HandoffTimeoutError",
    "ProcessExitError",
    "RunCancelled",
    "SpawnError",
    "StreamParseError",
]
