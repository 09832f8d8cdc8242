"""``remote:`` builtin: manage SSH/Telnet sessions to other hosts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from psh.builtins.format import format_shell_line
from psh.errors import BuiltinUsageError, SessionNotRunningError
from psh.registry import EntryKind
from psh.shell.spec import RemoteSpec, SshBackend, TelnetBackend
from psh.ui import ui_println

if TYPE_CHECKING:
    from psh.builtins import BuiltinContext

logger = logging.getLogger(__name__)

_BACKENDS = {"ssh": SshBackend, "telnet": TelnetBackend}


def build_remote_spec(backend: str, host: str, rest: list[str]) -> RemoteSpec:
    """Build a spec from ``<backend> <host> [port] [extra-args...]`` tokens.

    A purely numeric token right after the host is the port; anything else
    starts the extra arguments.
    """
    backend_cls = _BACKENDS[backend]
    fields: dict[str, object] = {}
    if rest and rest[0].isdigit():
        port = int(rest[0])
        if not 1 <= port <= 65535:
            raise ValueError(f"port out of range: {port}")
        fields["port"] = port
        rest = rest[1:]
    fields["extra_args"] = tuple(rest)
    return RemoteSpec(host=host, backend=backend_cls(**fields))


async def handle(ctx: BuiltinContext, args: str) -> None:
    """``remote [list] | add <name> ssh|telnet <host> [port] [args...] | remove | connect | disconnect``"""
    parts = args.split()
    match parts:
        case [] | ["list"]:
            await _list(ctx)
        case ["add", name, backend, host, *rest] if backend in _BACKENDS:
            try:
                spec = build_remote_spec(backend, host, rest)
            except ValueError as exc:
                raise BuiltinUsageError("remote", f"{args} ({exc})") from exc
            await ctx.add_and_start_shell(name, spec)
            logger.info("Remote %s added (%s %s:%d)", name, backend, host, spec.port)
        case ["remove", name]:
            try:
                await ctx.stop_shell_session(name)
            except SessionNotRunningError:
                pass
            ctx.unregister_entry(name)
            logger.info("Remote %s removed", name)
        case ["connect", name]:
            await ctx.ensure_shell_session_by_name(name)
            logger.info("Remote %s connected", name)
        case ["disconnect", name]:
            await ctx.stop_shell_session(name)
            logger.info("Remote %s disconnected", name)
        case _:
            raise BuiltinUsageError("remote", args)


async def _list(ctx: BuiltinContext) -> None:
    rows = [
        (name, entry.spec, running)
        for name, entry, running in await ctx.list_entries_with_status()
        if entry.kind is EntryKind.SHELL and isinstance(entry.spec, RemoteSpec)
    ]
    if not rows:
        ui_println("No remote shells registered")
        return
    ui_println("Remote shell list:")
    for name, spec, running in rows:
        ui_println(format_shell_line(name, spec, running))
