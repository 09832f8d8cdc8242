"""Router: owns the live session table and dispatches parsed input.

The session table is only reachable through :class:`SessionTable`, whose
lock is held for a lookup, insert or removal and never across a spawn. Each
spawned session gets a watcher task that removes its table slot on the first
``Exited`` event, so sessions that end on their own never linger.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from psh.builtins import get_handler
from psh.errors import (
    DefaultShellUnknownError,
    DefaultShellUnsetError,
    EventStreamClosed,
    SessionNotRunningError,
    ShellError,
    UnknownShellError,
)
from psh.registry import Entry, Registry
from psh.repl.mode import ModeState
from psh.repl.parser import ParsedEntry, parse
from psh.shell import factory
from psh.shell.events import Exited, Subscription
from psh.shell.session import PTYSession
from psh.shell.spec import LocalSpec, RemoteSpec

logger = logging.getLogger(__name__)

CTRL_C = b"\x03"

SessionFactory = Callable[[str, LocalSpec | RemoteSpec, int, int], Awaitable[PTYSession]]
SessionListener = Callable[[str, PTYSession], None]


class SessionRemover(Protocol):
    """The one capability a watcher needs."""

    async def remove_if(self, name: str, session: PTYSession) -> bool: ...


class SessionTable:
    """Name -> live session, guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._sessions: dict[str, PTYSession] = {}
        self._lock = asyncio.Lock()

    async def get(self, name: str) -> PTYSession | None:
        async with self._lock:
            return self._sessions.get(name)

    async def insert_if_absent(self, name: str, session: PTYSession) -> PTYSession:
        """Insert ``session`` unless ``name`` is taken; returns the table's session."""
        async with self._lock:
            existing = self._sessions.get(name)
            if existing is not None:
                return existing
            self._sessions[name] = session
            logger.debug("Session table: %d after inserting %s", len(self._sessions), name)
            return session

    async def remove(self, name: str) -> PTYSession | None:
        async with self._lock:
            return self._sessions.pop(name, None)

    async def remove_if(self, name: str, session: PTYSession) -> bool:
        """Remove ``name`` only while it still maps to ``session``."""
        async with self._lock:
            if self._sessions.get(name) is not session:
                return False
            del self._sessions[name]
            logger.debug("Session table: %d after removing %s", len(self._sessions), name)
            return True

    async def names(self) -> list[str]:
        async with self._lock:
            return sorted(self._sessions)

    async def items(self) -> list[tuple[str, PTYSession]]:
        async with self._lock:
            return sorted(self._sessions.items(), key=lambda kv: kv[0])

    async def clear(self) -> list[tuple[str, PTYSession]]:
        async with self._lock:
            items = list(self._sessions.items())
            self._sessions.clear()
            return items


async def watch_session(
    name: str, sub: Subscription, table: SessionRemover, session: PTYSession
) -> None:
    """Reclaim ``name``'s table slot once ``sub`` reports that ``session`` exited.

    ``sub`` must be taken before the session gets a chance to run, or an early
    exit goes unnoticed.
    """
    try:
        while True:
            try:
                event = await sub.recv()
            except EventStreamClosed:
                logger.debug("Watcher for %s: event stream closed", name)
                break
            if isinstance(event, Exited):
                if await table.remove_if(name, session):
                    logger.info("Session %s removed after exit (%s)", name, event.reason)
                    session.close()
                else:
                    logger.debug("Session %s already gone from table (%s)", name, event.reason)
                break
    finally:
        session.unsubscribe(sub)
        logger.debug("Watcher for %s done", name)


class Router:
    """Routes input lines to sessions and builtins.

    Also serves as the :class:`~psh.builtins.BuiltinContext` handed to
    builtin handlers.
    """

    def __init__(
        self,
        registry: Registry | None = None,
        cols: int = 80,
        rows: int = 24,
        *,
        mode: ModeState | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.registry = registry if registry is not None else Registry.with_builtins()
        self.mode = mode or ModeState()
        self.cols = cols
        self.rows = rows
        self._sessions = SessionTable()
        self._factory: SessionFactory = session_factory or factory.spawn
        self._listeners: list[SessionListener] = []
        self._watchers: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    async def exec(self, line: str) -> None:
        """Parse ``line`` and dispatch it.

        Raises:
            DefaultShellUnsetError: No prefix, and neither a current nor a
                default mode is set.
            DefaultShellUnknownError: The resolved mode is no longer registered.
            PshError: Whatever the dispatched builtin or session raises.
        """
        parsed = parse(self.registry, line)
        if isinstance(parsed, ParsedEntry):
            self.mode.set_current(parsed.name)
            await self._dispatch(parsed.name, parsed.entry, parsed.command)
            return

        target = self.mode.resolve()
        if target is None:
            logger.warning("No current or default mode for %r", parsed.command)
            raise DefaultShellUnsetError()
        entry = self.registry.get(target)
        if entry is None:
            logger.warning("Mode %s is not registered", target)
            raise DefaultShellUnknownError(target)
        await self._dispatch(target, entry, parsed.command)

    async def _dispatch(self, name: str, entry: Entry, command: str) -> None:
        if entry.is_shell:
            session = await self.ensure_shell_session_by_spec(name, entry.spec)
            await session.send_line(command)
            logger.debug("Routed %r to %s", command, name)
            return
        handler = get_handler(name)
        if handler is None:
            logger.warning("No handler for builtin %s", name)
            return
        await handler(self, command)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def ensure_shell_session_by_spec(
        self, name: str, spec: LocalSpec | RemoteSpec
    ) -> PTYSession:
        """Return the live session for ``name``, spawning it from ``spec`` if needed."""
        existing = await self._sessions.get(name)
        if existing is not None:
            logger.debug("Session %s already running", name)
            return existing

        session = await self._factory(name, spec, self.cols, self.rows)
        sub = session.subscribe()
        stored = await self._sessions.insert_if_absent(name, session)
        if stored is not session:
            # Lost a race with a concurrent spawn of the same name
            logger.info("Session %s started concurrently; discarding duplicate", name)
            session.unsubscribe(sub)
            try:
                await session.shutdown()
            except ShellError as exc:
                logger.warning("Could not shut down duplicate %s: %s", name, exc)
            return stored

        watcher = asyncio.create_task(
            watch_session(name, sub, self._sessions, session), name=f"psh-{name}-watcher"
        )
        self._watchers.add(watcher)
        watcher.add_done_callback(self._watchers.discard)
        logger.info("Session %s created", name)

        for listener in list(self._listeners):
            try:
                listener(name, session)
            except Exception:
                logger.exception("Session listener failed for %s", name)
        return session

    async def ensure_shell_session_by_name(self, name: str) -> PTYSession:
        spec = self.registry.get_shell_spec(name)
        if spec is None:
            logger.error("No shell registered as %s", name)
            raise UnknownShellError(name)
        return await self.ensure_shell_session_by_spec(name, spec)

    async def stop_shell_session(self, name: str) -> None:
        """Drop ``name`` from the table, then ask the session to exit."""
        session = await self._sessions.remove(name)
        if session is None:
            logger.warning("Cannot stop %s: not running", name)
            raise SessionNotRunningError(name)
        try:
            await session.shutdown()
        except ShellError as exc:
            logger.warning("Graceful shutdown of %s failed: %s", name, exc)
        logger.info("Session %s stopped", name)

    async def add_and_start_shell(self, name: str, spec: LocalSpec | RemoteSpec) -> None:
        await self.ensure_shell_session_by_spec(name, spec)
        self.registry.register(name, Entry.shell(spec))
        logger.info("Shell %s added and started", name)

    async def get_session(self, name: str) -> PTYSession | None:
        return await self._sessions.get(name)

    def add_session_listener(self, listener: SessionListener) -> None:
        """Call ``listener(name, session)`` for every session spawned from now on."""
        self._listeners.append(listener)

    async def resize_all(self, cols: int, rows: int) -> None:
        """Apply a new terminal size to future spawns and every live session."""
        self.cols, self.rows = cols, rows
        for name, session in await self._sessions.items():
            try:
                await session.resize(cols, rows)
            except ShellError as exc:
                logger.warning("Resize of %s failed: %s", name, exc)

    async def forward_interrupt(self) -> str | None:
        """Send Ctrl-C to the current (or default) shell; returns its name."""
        target = self.mode.resolve()
        if target is None or self.registry.get_shell_spec(target) is None:
            logger.debug("Ctrl-C: no shell target")
            return None
        session = await self.ensure_shell_session_by_name(target)
        await session.send_bytes(CTRL_C)
        logger.info("Ctrl-C forwarded to %s", target)
        return target

    async def cleanup(self, grace: float = 2.0) -> None:
        """Shut down every live session; kill whatever outlives ``grace`` seconds.

        All sessions share one deadline, and a shutdown that cannot even be
        queued (the session's command queue is full) counts against it.
        """
        sessions = await self._sessions.clear()
        for watcher in list(self._watchers):
            watcher.cancel()
        deadline = asyncio.get_running_loop().time() + grace
        await asyncio.gather(
            *(self._retire(name, session, deadline) for name, session in sessions)
        )
        logger.info("All sessions cleaned up (%d)", len(sessions))

    async def _retire(self, name: str, session: PTYSession, deadline: float) -> None:
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(session.shutdown(), timeout=max(0.0, deadline - loop.time()))
        except ShellError as exc:
            logger.debug("Shutdown of %s during cleanup failed: %s", name, exc)
        except asyncio.TimeoutError:
            logger.warning("Session %s did not accept shutdown in time", name)
        try:
            await asyncio.wait_for(session.wait(), timeout=max(0.0, deadline - loop.time()))
        except asyncio.TimeoutError:
            logger.warning("Session %s ignored shutdown; killing", name)
            session.kill()

    # ------------------------------------------------------------------
    # Listings, registry and modes
    # ------------------------------------------------------------------

    def list_entries(self) -> list[tuple[str, Entry]]:
        return self.registry.list()

    async def list_entries_with_status(self) -> list[tuple[str, Entry, bool]]:
        running = set(await self._sessions.names())
        return [(name, entry, name in running) for name, entry in self.registry.list()]

    async def list_running_entries(self) -> list[str]:
        return await self._sessions.names()

    def register_entry(self, name: str, entry: Entry) -> None:
        self.registry.register(name, entry)

    def unregister_entry(self, name: str) -> None:
        self.registry.unregister(name)

    def get_current_mode(self) -> str | None:
        return self.mode.get_current()

    def set_current_mode(self, name: str) -> bool:
        if not self.registry.has(name):
            logger.warning("Cannot switch to unknown mode %s", name)
            return False
        self.mode.set_current(name)
        return True

    def get_default_mode(self) -> str | None:
        return self.mode.get_default()

    def set_default_mode(self, name: str) -> bool:
        if not self.registry.has(name):
            logger.warning("Cannot set unknown default %s", name)
            return False
        self.mode.set_default(name)
        logger.info("Default mode set to %s", name)
        return True
