"""Collects the failures each launcher reports during a run."""

from __future__ import annotations

from dataclasses import dataclass, field

from gw1h.errors import Gw1hError

EXIT_OK = 0
EXIT_INTERRUPTED = 130


@dataclass(frozen=True)
class Failure:
    role: str
    error: Gw1hError

    def __str__(self) -> str:
        return f"{self.role}: {self.error}"


@dataclass
class RunReport:
    """Append-only record of reported failures, in reporting order."""

    failures: list[Failure] = field(default_factory=list)
    interrupted: bool = False

    def add(self, role: str, error: Gw1hError) -> None:
        self.failures.append(Failure(role, error))

    @property
    def ok(self) -> bool:
        return not self.failures and not self.interrupted

    def errors_of(self, kind: type) -> list[Gw1hError]:
        return [f.error for f in self.failures if isinstance(f.error, kind)]

    @property
    def exit_code(self) -> int:
        """Exit status of the first reported failure; 130 for a clean interrupt; 0 otherwise."""
        if self.failures:
            return self.failures[0].error.exit_code
        if self.interrupted:
            return EXIT_INTERRUPTED
        return EXIT_OK
