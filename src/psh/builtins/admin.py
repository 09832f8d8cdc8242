"""``admin:`` builtin: running sessions and the default shell."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from psh.errors import BuiltinUsageError
from psh.ui import ui_println

if TYPE_CHECKING:
    from psh.builtins import BuiltinContext

logger = logging.getLogger(__name__)


async def handle(ctx: BuiltinContext, args: str) -> None:
    parts = args.split()
    match parts:
        case ["sessions"]:
            names = await ctx.list_running_entries()
            if not names:
                ui_println("no running sessions")
                return
            ui_println("Running sessions list:")
            for name in names:
                ui_println(f"  {name}")
        case ["default", "set", name]:
            if ctx.set_default_mode(name):
                ui_println(f"default shell: {name}")
            else:
                logger.warning("Cannot set default shell to unknown name %s", name)
                ui_println(f"unknown shell: {name}")
        case ["default", "get"]:
            current = ctx.get_default_mode()
            ui_println(f"default shell: {current}" if current else "default shell is not set")
        case _:
            raise BuiltinUsageError("admin", args)
