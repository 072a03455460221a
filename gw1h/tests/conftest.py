import asyncio
from typing import Optional

import pytest

from gw1h.cancellation import CancellationToken
from gw1h.errors import SpawnError
from gw1h.handoff import PidHandoff
from gw1h.report import RunReport
from gw1h.settings import RoleSelection, Settings


class FakeProcess:
    """
    Stand-in for a started process.
    exit_after=None means it runs until finish() or terminate() is called.
    stall_output keeps stdout open until the process exits.
    """

    def __init__(self, role, argv, pid, env, lines=(), returncode=0,
                 exit_after: Optional[float] = None, stall_output=False):
        self.role = role
        self.argv = list(argv)
        self.pid = pid
        self.env = env
        self._lines = list(lines)
        self._returncode = returncode
        self._stall = stall_output
        self._exit = asyncio.get_running_loop().create_future()
        self.terminate_requested = False
        if exit_after is not None:
            asyncio.get_running_loop().call_later(exit_after, self.finish)

    @property
    def returncode(self):
        return self._exit.result() if self._exit.done() else None

    @property
    def running(self):
        return not self._exit.done()

    def finish(self, code=None):
        if not self._exit.done():
            self._exit.set_result(self._returncode if code is None else code)

    async def wait(self):
        return await asyncio.shield(self._exit)

    async def terminate(self, grace=0):
        if self._exit.done():
            return
        self.terminate_requested = True
        self.finish(-15)

    async def lines(self):
        for line in self._lines:
            await asyncio.sleep(0)
            yield line
        if self._stall:
            await asyncio.shield(self._exit)


class FakeSpawner:
    """Spawner whose processes behave as scripted per role."""

    def __init__(self):
        self.behaviour: dict[str, dict] = {}
        self.failing: set[str] = set()
        self.spawned: list[FakeProcess] = []
        self._next_pid = 100

    def script(self, role, **behaviour):
        self.behaviour[role] = behaviour
        return self

    def fail(self, role):
        self.failing.add(role)
        return self

    async def spawn(self, role, argv, env, *, capture_stdout=False):
        if role in self.failing:
            raise SpawnError(list(argv), "No such file or directory")
        self._next_pid += 1
        proc = FakeProcess(role, argv, self._next_pid, env, **self.behaviour.get(role, {}))
        self.spawned.append(proc)
        return proc

    def started(self, role):
        return [p for p in self.spawned if p.role == role]

    def one(self, role):
        procs = self.started(role)
        assert len(procs) == 1, f"expected exactly one {role} process, got {procs}"
        return procs[0]


def make_settings(primary=True, dependent=True, gw_pid=None, **extra):
    payload = dict(
        roles=RoleSelection(primary=primary, dependent=dependent),
        gw_pid=gw_pid,
        wine_prefix="/tmp/gw1h-prefix",
    )
    payload.update(extra)
    return Settings(**payload)


@pytest.fixture
def spawner():
    return FakeSpawner()


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def run_parts():
    """Fresh token, hand-off slot and report, as one run would create them."""
    return CancellationToken(), PidHandoff(), RunReport()
