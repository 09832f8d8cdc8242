"""``local:`` builtin: manage shells started on this machine."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from psh.builtins.format import format_shell_line
from psh.errors import BuiltinUsageError, SessionNotRunningError
from psh.registry import EntryKind
from psh.shell.spec import LocalSpec
from psh.ui import ui_println

if TYPE_CHECKING:
    from psh.builtins import BuiltinContext

logger = logging.getLogger(__name__)


async def handle(ctx: BuiltinContext, args: str) -> None:
    """``local [list] | add <name> <program> | remove <name> | start <name> | stop <name>``"""
    parts = args.split()
    match parts:
        case [] | ["list"]:
            await _list(ctx)
        case ["add", name, program]:
            await ctx.add_and_start_shell(name, LocalSpec(program=program))
            logger.info("Local shell %s added (%s)", name, program)
        case ["remove", name]:
            try:
                await ctx.stop_shell_session(name)
            except SessionNotRunningError:
                pass
            ctx.unregister_entry(name)
            logger.info("Local shell %s removed", name)
        case ["start", name]:
            await ctx.ensure_shell_session_by_name(name)
            logger.info("Local shell %s started", name)
        case ["stop", name]:
            await ctx.stop_shell_session(name)
            logger.info("Local shell %s stopped", name)
        case _:
            raise BuiltinUsageError("local", args)


async def _list(ctx: BuiltinContext) -> None:
    rows = [
        (name, entry.spec, running)
        for name, entry, running in await ctx.list_entries_with_status()
        if entry.kind is EntryKind.SHELL and isinstance(entry.spec, LocalSpec)
    ]
    if not rows:
        ui_println("No local shells registered")
        return
    ui_println("Local shell list:")
    for name, spec, running in rows:
        ui_println(format_shell_line(name, spec, running))
