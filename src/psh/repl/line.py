"""Interactive input loop."""

from __future__ import annotations

import asyncio
import logging
import shutil
import signal

from rich.text import Text

from psh.errors import EventStreamClosed, ExitRequested, PshError
from psh.registry import EntryKind
from psh.repl.router import Router
from psh.shell.events import Exited, Output, Subscription
from psh.shell.session import PTYSession
from psh.shell.spec import LocalSpec
from psh.ui import console, ui_error, ui_println, write_passthrough

logger = logging.getLogger(__name__)

BANNER = (
    " bash: <cmd> | zsh: <cmd> | local: list | local: add mysh zsh"
    " | remote: add r1 ssh user@host | remote: connect r1"
    " | admin: default get | admin: default set bash | quit:"
)

_MODE_STYLES = {"builtin": "magenta", "local": "green", "remote": "cyan"}


def _mode_style(router: Router, name: str) -> str:
    entry = router.registry.get(name)
    if entry is None:
        return "red"
    if entry.kind is EntryKind.BUILTIN:
        return _MODE_STYLES["builtin"]
    return _MODE_STYLES["local" if isinstance(entry.spec, LocalSpec) else "remote"]


def render_prompt(router: Router, prompt: str = "psh") -> Text:
    """``psh> `` followed by the current mode, if any, colored by entry kind."""
    text = Text(f"{prompt}> ", style="bold")
    current = router.get_current_mode()
    if current:
        text.append(f"{current}: ", style=_mode_style(router, current))
    return text


class OutputPump:
    """Copies every session's output to the terminal until the session ends."""

    def __init__(self) -> None:
        self._tasks: dict[int, asyncio.Task] = {}

    def attach(self, name: str, session: PTYSession) -> None:
        key = id(session)
        if key in self._tasks:
            return
        sub = session.subscribe()
        task = asyncio.create_task(self._pump(name, session, sub), name=f"psh-{name}-pump")
        self._tasks[key] = task
        task.add_done_callback(lambda _t: self._tasks.pop(key, None))

    async def _pump(self, name: str, session: PTYSession, sub: Subscription) -> None:
        announced = False
        try:
            while True:
                try:
                    event = await sub.recv()
                except EventStreamClosed:
                    break
                # Whatever else is already buffered goes out in the same write
                chunks: list[str] = []
                while isinstance(event, Output):
                    chunks.append(event.text)
                    event = sub.recv_nowait()
                if chunks:
                    write_passthrough("".join(chunks))
                if isinstance(event, Exited) and not announced:
                    announced = True
                    logger.info("Session %s exited: %s", name, event.reason)
                    ui_println(f"[{name} exited: {event.reason}]")
        finally:
            session.unsubscribe(sub)

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, router: Router) -> list[int]:
    background: set[asyncio.Task] = set()

    def spawn(coro) -> None:
        task = loop.create_task(coro)
        background.add(task)
        task.add_done_callback(background.discard)

    async def interrupt() -> None:
        try:
            target = await router.forward_interrupt()
        except PshError as exc:
            logger.warning("Ctrl-C not forwarded: %s", exc)
            return
        if target is None:
            ui_println("^C")

    async def resize() -> None:
        size = shutil.get_terminal_size()
        logger.debug("Terminal resized to %dx%d", size.columns, size.lines)
        await router.resize_all(size.columns, size.lines)

    installed = []
    for signum, factory in ((signal.SIGINT, interrupt), (signal.SIGWINCH, resize)):
        try:
            loop.add_signal_handler(signum, lambda f=factory: spawn(f()))
        except (NotImplementedError, RuntimeError) as exc:
            logger.warning("Cannot handle signal %s: %s", signum, exc)
            continue
        installed.append(signum)
    return installed


async def run_line(
    router: Router, prompt: str = "psh", pump: OutputPump | None = None
) -> None:
    """Read lines from the terminal and route them until quit or EOF.

    Session output is copied to stdout as it arrives. Ctrl-C goes to the
    current shell as ``0x03`` instead of stopping psh, and terminal resizes
    are passed on to every session.

    Pass the ``pump`` that was listening while the shells were started so
    their first prompt is not lost. Without one, a new pump attaches to the
    running sessions and has each of them print its prompt again.
    """
    loop = asyncio.get_running_loop()
    if pump is None:
        pump = OutputPump()
        router.add_session_listener(pump.attach)
        for name in await router.list_running_entries():
            session = await router.get_session(name)
            if session is None:
                continue
            pump.attach(name, session)
            try:
                await session.send_line("")
            except PshError as exc:
                logger.debug("Cannot re-prompt %s: %s", name, exc)

    signals = _install_signal_handlers(loop, router)

    ui_println("Type lines like:")
    ui_println(BANNER)
    try:
        while True:
            try:
                line = await loop.run_in_executor(
                    None, console.input, render_prompt(router, prompt)
                )
            except EOFError:
                logger.info("EOF on input")
                ui_println("")
                break
            if not line.strip():
                continue
            try:
                await router.exec(line)
            except ExitRequested:
                logger.info("Exit requested")
                break
            except PshError as exc:
                logger.debug("Command %r failed: %s", line, exc)
                ui_error(exc)
    finally:
        for signum in signals:
            loop.remove_signal_handler(signum)
        await router.cleanup()
        await pump.stop()
