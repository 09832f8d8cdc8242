"""PTY session: a child process on a pseudoterminal, supervised by three tasks.

Every session runs:

- a **reader** that turns chunks read from the PTY master into ``Output``
  events and reports EOF or read errors as ``Exited``,
- a **writer** that drains the command queue in order (line and byte writes,
  resizes, graceful shutdown),
- a **waiter** that reports process termination as ``Exited``.

Blocking calls (``os.read``, ``Popen.wait``, writes and ``TIOCSWINSZ``) run on
a small per-session thread pool so one stalled session never starves
another. None of the three tasks stops the others; callers learn about
failures only through the event stream.
"""

from __future__ import annotations

import asyncio
import codecs
import enum
import errno
import fcntl
import logging
import os
import pty
import signal
import struct
import subprocess
import termios
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import BinaryIO

from psh.errors import (
    ChannelClosedError,
    CloneReaderError,
    PtyOpenError,
    ReadError,
    ResizeError,
    SpawnError,
    TakeWriterError,
    WaitError,
    WriteError,
)
from psh.shell.events import (
    EventBus,
    Exited,
    Output,
    Resize,
    ShellCmd,
    Shutdown,
    Subscription,
    WriteBytes,
    WriteLine,
)

logger = logging.getLogger(__name__)

SHELL_CMD_QUEUE_SIZE = 64
PTY_READ_CHUNK = 4096
SHELL_EXIT_CMD = b"exit\n"
NEWLINE = b"\n"


class PTYStatus(enum.Enum):
    """Lifecycle states for a PTY session."""

    RUNNING = "running"
    KILLED = "killed"  # SIGKILL sent by us
    EXITED = "exited"  # Process ended on its own or after shutdown


def describe_exit_status(returncode: int) -> str:
    """Human-readable form of a ``Popen.returncode``."""
    if returncode < 0:
        return f"signal: {-returncode}"
    return f"exit status: {returncode}"


def _set_winsize(fd: int, cols: int, rows: int) -> None:
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))


def _claim_controlling_tty() -> None:
    # Runs in the child after setsid(); stdin is already the slave.
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


def _abandon(proc: subprocess.Popen, *fds: int) -> None:
    for fd in fds:
        try:
            os.close(fd)
        except OSError:
            pass
    try:
        proc.kill()
        proc.wait(timeout=2)
    except (OSError, subprocess.SubprocessError):
        logger.debug("Could not reap abandoned child %s", proc.pid)


def _open_process(
    command: Sequence[str],
    cols: int,
    rows: int,
) -> tuple[subprocess.Popen, int, int, BinaryIO]:
    """Allocate the PTY and start the child. Blocking."""
    try:
        master_fd, slave_fd = pty.openpty()
    except OSError as exc:
        raise PtyOpenError(str(exc)) from exc

    try:
        _set_winsize(slave_fd, cols, rows)
    except OSError as exc:
        os.close(master_fd)
        os.close(slave_fd)
        raise PtyOpenError(f"cannot set size {cols}x{rows}: {exc}") from exc

    child_env = dict(os.environ)
    child_env.setdefault("TERM", "xterm-256color")

    try:
        proc = subprocess.Popen(
            list(command),
            stdin=slave_fd,
            stdout=slave_fd,
            stderr=slave_fd,
            start_new_session=True,
            preexec_fn=_claim_controlling_tty,
            env=child_env,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        os.close(master_fd)
        raise SpawnError(command[0], str(exc)) from exc
    finally:
        # Parent always closes the slave end
        os.close(slave_fd)

    try:
        reader_fd = os.dup(master_fd)
    except OSError as exc:
        _abandon(proc, master_fd)
        raise CloneReaderError(str(exc)) from exc

    try:
        writer_fd = os.dup(master_fd)
    except OSError as exc:
        _abandon(proc, master_fd, reader_fd)
        raise TakeWriterError(str(exc)) from exc
    try:
        writer = os.fdopen(writer_fd, "wb")
    except OSError as exc:
        _abandon(proc, master_fd, reader_fd, writer_fd)
        raise TakeWriterError(str(exc)) from exc

    return proc, master_fd, reader_fd, writer


class PTYSession:
    """Handle to one running session.

    Create with :meth:`spawn`. The command methods only enqueue; they return
    as soon as the writer has accepted the command and raise
    :class:`ChannelClosedError` once the writer has stopped. Subscribe to
    learn what actually happened.
    """

    def __init__(
        self,
        name: str,
        command: Sequence[str],
        proc: subprocess.Popen,
        master_fd: int,
        reader_fd: int,
        writer: BinaryIO,
        executor: ThreadPoolExecutor,
    ) -> None:
        self.name = name
        self.command: tuple[str, ...] = tuple(command)
        self._proc = proc
        self._master_fd = master_fd
        self._reader_fd = reader_fd
        self._writer = writer
        self._executor = executor
        # Writes and resizes touch the same descriptor
        self._io_lock = Lock()
        self._commands: asyncio.Queue[ShellCmd | None] = asyncio.Queue(
            maxsize=SHELL_CMD_QUEUE_SIZE
        )
        self._events = EventBus(name)
        self._channel_open = True
        self._status = PTYStatus.RUNNING
        self._returncode: int | None = None
        self._tasks: list[asyncio.Task] = []
        self._finalizer: asyncio.Task | None = None
        self._pending_close: asyncio.Task | None = None

    @classmethod
    async def spawn(
        cls,
        name: str,
        program: str,
        args: Sequence[str] = (),
        cols: int = 80,
        rows: int = 24,
    ) -> PTYSession:
        """Start ``program args...`` on a fresh PTY of ``cols`` x ``rows``.

        Raises:
            PtyOpenError, SpawnError, CloneReaderError, TakeWriterError:
                The session could not be created. Nothing is left running.
        """
        command = [program, *args]
        logger.debug("Spawning session %s: %s (%dx%d)", name, " ".join(command), cols, rows)
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=3, thread_name_prefix=f"psh-{name}")
        try:
            proc, master_fd, reader_fd, writer = await loop.run_in_executor(
                executor, _open_process, command, cols, rows
            )
        except BaseException:
            executor.shutdown(wait=False)
            raise

        session = cls(name, command, proc, master_fd, reader_fd, writer, executor)
        session._start()
        logger.info(
            "PTY session %s started: pid=%d cmd=%s", name, proc.pid, " ".join(command)
        )
        return session

    def _start(self) -> None:
        self._tasks = [
            asyncio.create_task(self._read_loop(), name=f"psh-{self.name}-reader"),
            asyncio.create_task(self._write_loop(), name=f"psh-{self.name}-writer"),
            asyncio.create_task(self._wait_loop(), name=f"psh-{self.name}-waiter"),
        ]
        self._finalizer = asyncio.create_task(
            self._finalize(), name=f"psh-{self.name}-finalize"
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send_line(self, text: str) -> None:
        logger.debug("send_line %s: %r", self.name, text)
        await self._submit(WriteLine(text), "write_line")

    async def send_bytes(self, data: bytes) -> None:
        logger.debug("send_bytes %s: %d bytes", self.name, len(data))
        await self._submit(WriteBytes(bytes(data)), "write_bytes")

    async def resize(self, cols: int, rows: int) -> None:
        logger.debug("resize %s: %dx%d", self.name, cols, rows)
        await self._submit(Resize(cols, rows), "resize")

    async def shutdown(self) -> None:
        """Ask the shell to exit by typing ``exit``. Does not kill anything."""
        logger.debug("shutdown %s", self.name)
        await self._submit(Shutdown(), "shutdown")

    def subscribe(self) -> Subscription:
        """Fresh cursor over this session's events, starting from now."""
        return self._events.subscribe()

    def unsubscribe(self, sub: Subscription) -> None:
        self._events.unsubscribe(sub)

    def close(self) -> None:
        """Release the command channel.

        Commands already queued are still written; later submissions raise
        :class:`ChannelClosedError`.
        """
        if not self._channel_open:
            return
        self._channel_open = False
        try:
            self._commands.put_nowait(None)
        except asyncio.QueueFull:
            self._pending_close = asyncio.get_running_loop().create_task(
                self._commands.put(None)
            )
        logger.debug("Command channel of %s released", self.name)

    def kill(self) -> None:
        """SIGKILL the session's whole process group."""
        if self._returncode is not None or self._status == PTYStatus.KILLED:
            return
        self._status = PTYStatus.KILLED
        try:
            os.killpg(self._proc.pid, signal.SIGKILL)
            logger.info("Killed PTY session %s (pgid=%d)", self.name, self._proc.pid)
        except ProcessLookupError:
            logger.debug("Process group already gone: %d", self._proc.pid)
        except OSError as exc:
            logger.warning("Error killing PTY session %s: %s", self.name, exc)

    async def wait(self) -> int | None:
        """Wait for the child to terminate; returns its return code."""
        if self._tasks:
            await asyncio.shield(self._tasks[2])
        return self._returncode

    async def wait_closed(self) -> None:
        """Wait until reader, writer and waiter have all finished."""
        if self._finalizer is not None:
            await asyncio.shield(self._finalizer)

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def status(self) -> PTYStatus:
        return self._status

    @property
    def returncode(self) -> int | None:
        return self._returncode

    @property
    def alive(self) -> bool:
        return self._returncode is None and self._status == PTYStatus.RUNNING

    @property
    def accepting_commands(self) -> bool:
        return self._channel_open

    def __repr__(self) -> str:
        return (
            f"PTYSession(name={self.name!r}, pid={self._proc.pid}, "
            f"status={self._status.value})"
        )

    # ------------------------------------------------------------------
    # Supervision
    # ------------------------------------------------------------------

    async def _submit(self, cmd: ShellCmd, context: str) -> None:
        if not self._channel_open:
            raise ChannelClosedError(f"{self.name} {context}")
        await self._commands.put(cmd)

    async def _read_loop(self) -> None:
        loop = asyncio.get_running_loop()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        reason = "eof"
        logger.debug("Reader for %s started", self.name)
        try:
            while True:
                try:
                    data = await loop.run_in_executor(
                        self._executor, os.read, self._reader_fd, PTY_READ_CHUNK
                    )
                except OSError as exc:
                    # Linux reports EIO once the slave side has gone away
                    if exc.errno != errno.EIO:
                        err = ReadError(str(exc))
                        logger.error("Reader for %s failed: %s", self.name, err)
                        reason = f"reader_error: {err}"
                    break
                if not data:
                    break
                text = decoder.decode(data)
                if text:
                    self._events.send(Output(text))
            tail = decoder.decode(b"", final=True)
            if tail:
                self._events.send(Output(tail))
            logger.info("Reader for %s finished: %s", self.name, reason)
            self._events.send(Exited(reason))
        finally:
            try:
                os.close(self._reader_fd)
            except OSError:
                pass

    async def _write_loop(self) -> None:
        loop = asyncio.get_running_loop()
        logger.debug("Writer for %s started", self.name)
        try:
            while True:
                cmd = await self._commands.get()
                if cmd is None:
                    logger.debug("Writer for %s: channel released", self.name)
                    break

                if isinstance(cmd, (WriteLine, WriteBytes)):
                    if isinstance(cmd, WriteLine):
                        payload, label = cmd.text.encode("utf-8") + NEWLINE, "write"
                    else:
                        payload, label = cmd.data, "write_bytes"
                    try:
                        await loop.run_in_executor(self._executor, self._write, payload)
                    except (OSError, ValueError) as exc:
                        err = WriteError(str(exc))
                        logger.error("%s to %s failed: %s", label, self.name, err)
                        self._events.send(Exited(f"{label}_failed: {err}"))
                        break

                elif isinstance(cmd, Resize):
                    try:
                        await loop.run_in_executor(
                            self._executor, self._apply_resize, cmd.cols, cmd.rows
                        )
                        logger.debug("Resized %s to %dx%d", self.name, cmd.cols, cmd.rows)
                    except OSError as exc:
                        logger.error("%s: %s", self.name, ResizeError(str(exc)))

                elif isinstance(cmd, Shutdown):
                    logger.info("Shutdown requested for %s", self.name)
                    try:
                        await loop.run_in_executor(
                            self._executor, self._write, SHELL_EXIT_CMD
                        )
                    except (OSError, ValueError) as exc:
                        logger.warning(
                            "Shutdown write to %s failed: %s", self.name, WriteError(str(exc))
                        )
                    break
        finally:
            self._channel_open = False
            self._drain_commands()
            try:
                self._writer.close()
            except OSError:
                pass
            logger.debug("Writer for %s finished", self.name)

    async def _wait_loop(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            returncode = await loop.run_in_executor(self._executor, self._proc.wait)
        except (OSError, subprocess.SubprocessError) as exc:
            err = WaitError(str(exc))
            logger.error("Waiting on %s failed: %s", self.name, err)
            self._events.send(Exited(f"wait_failed: {err}"))
            return
        self._returncode = returncode
        if self._status == PTYStatus.RUNNING:
            self._status = PTYStatus.EXITED
        reason = describe_exit_status(returncode)
        logger.info("PTY session %s exited (%s)", self.name, reason)
        self._events.send(Exited(reason))

    async def _finalize(self) -> None:
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for task, result in zip(self._tasks, results):
            if isinstance(result, BaseException):
                logger.error("Task %s ended with %r", task.get_name(), result)
        self._events.close()
        try:
            os.close(self._master_fd)
        except OSError:
            pass
        self._executor.shutdown(wait=False)
        logger.debug("PTY session %s fully closed", self.name)

    def _write(self, payload: bytes) -> None:
        with self._io_lock:
            self._writer.write(payload)
            self._writer.flush()

    def _apply_resize(self, cols: int, rows: int) -> None:
        with self._io_lock:
            _set_winsize(self._master_fd, cols, rows)

    def _drain_commands(self) -> None:
        dropped = 0
        while not self._commands.empty():
            if self._commands.get_nowait() is not None:
                dropped += 1
        if dropped:
            logger.warning("Dropped %d queued command(s) for %s", dropped, self.name)
