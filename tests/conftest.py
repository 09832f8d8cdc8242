"""Shared fixtures: an in-memory stand-in for PTYSession, and real-session cleanup."""

from __future__ import annotations

import asyncio

import pytest

from psh.errors import ChannelClosedError, SpawnError
from psh.shell.events import EventBus, Exited, Output


class FakeSession:
    """Records commands instead of writing to a PTY.

    ``echo=True`` turns every ``send_line`` into an ``Output`` event, and
    ``exit_on_shutdown`` makes ``shutdown`` emit ``Exited`` like a real shell
    typing ``exit``. ``block_shutdown`` makes ``shutdown`` wait forever, as it
    does when the command queue is full.
    """

    def __init__(
        self, name, spec, cols, rows, *, echo=False, exit_on_shutdown=True, block_shutdown=False
    ):
        self.name = name
        self.spec = spec
        self.cols = cols
        self.rows = rows
        self.echo = echo
        self.exit_on_shutdown = exit_on_shutdown
        self.block_shutdown = block_shutdown
        self.lines: list[str] = []
        self.raw: list[bytes] = []
        self.resizes: list[tuple[int, int]] = []
        self.shutdowns = 0
        self.closed = False
        self.killed = False
        self._exited = asyncio.Event()
        self._events = EventBus(name)

    async def send_line(self, text: str) -> None:
        self._check_open()
        self.lines.append(text)
        if self.echo:
            self._events.send(Output(text + "\r\n"))

    async def send_bytes(self, data: bytes) -> None:
        self._check_open()
        self.raw.append(data)

    async def resize(self, cols: int, rows: int) -> None:
        self._check_open()
        self.resizes.append((cols, rows))

    async def shutdown(self) -> None:
        self._check_open()
        if self.block_shutdown:
            await asyncio.Event().wait()
        self.shutdowns += 1
        if self.exit_on_shutdown:
            self.exit("exit status: 0")

    def exit(self, reason: str = "eof") -> None:
        self._events.send(Exited(reason))
        self._exited.set()

    def subscribe(self):
        return self._events.subscribe()

    def unsubscribe(self, sub) -> None:
        self._events.unsubscribe(sub)

    def close(self) -> None:
        self.closed = True

    def kill(self) -> None:
        self.killed = True
        self.exit("signal: 9")

    async def wait(self):
        await self._exited.wait()
        return 0

    @property
    def alive(self) -> bool:
        return not self._exited.is_set()

    def _check_open(self) -> None:
        if self.closed:
            raise ChannelClosedError(self.name)


class FakeFactory:
    """Session factory that hands out :class:`FakeSession` objects."""

    def __init__(self, **session_kwargs) -> None:
        self.session_kwargs = session_kwargs
        self.spawned: list[FakeSession] = []
        self.fail_for: set[str] = set()

    async def __call__(self, name, spec, cols, rows):
        # Yield like a real spawn so concurrent callers can interleave
        await asyncio.sleep(0)
        if name in self.fail_for:
            raise SpawnError(name, "no such program")
        session = FakeSession(name, spec, cols, rows, **self.session_kwargs)
        self.spawned.append(session)
        return session

    def count(self, name: str) -> int:
        return sum(1 for s in self.spawned if s.name == name)


@pytest.fixture
def fake_factory() -> FakeFactory:
    return FakeFactory()


async def settle(rounds: int = 5) -> None:
    """Let pending tasks (watchers, pumps) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
async def sessions_to_close():
    """Collects real PTY sessions and tears them down after the test."""
    sessions = []
    yield sessions
    for session in sessions:
        session.kill()
        session.close()
        try:
            await asyncio.wait_for(session.wait_closed(), timeout=5)
        except asyncio.TimeoutError:
            pass
