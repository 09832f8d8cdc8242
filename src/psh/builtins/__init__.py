"""Builtin command handlers and the narrow router capability they receive.

Each handler is ``async def handle(ctx, args)`` where ``args`` is the text
after the ``<builtin>:`` prefix.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol

from psh.builtins.format import format_shell_line

if TYPE_CHECKING:
    from psh.registry import Entry
    from psh.shell.session import PTYSession
    from psh.shell.spec import LocalSpec, RemoteSpec


class BuiltinContext(Protocol):
    """What a builtin may do to the router."""

    async def add_and_start_shell(self, name: str, spec: LocalSpec | RemoteSpec) -> None: ...

    async def stop_shell_session(self, name: str) -> None: ...

    async def ensure_shell_session_by_name(self, name: str) -> PTYSession: ...

    async def list_entries_with_status(self) -> list[tuple[str, Entry, bool]]: ...

    async def list_running_entries(self) -> list[str]: ...

    def list_entries(self) -> list[tuple[str, Entry]]: ...

    def register_entry(self, name: str, entry: Entry) -> None: ...

    def unregister_entry(self, name: str) -> None: ...

    def get_current_mode(self) -> str | None: ...

    def set_current_mode(self, name: str) -> bool: ...

    def get_default_mode(self) -> str | None: ...

    def set_default_mode(self, name: str) -> bool: ...


BuiltinHandler = Callable[[BuiltinContext, str], Awaitable[None]]


def get_handler(name: str) -> BuiltinHandler | None:
    """Handler for the builtin registered as ``name``."""
    from psh.builtins import admin, local, quit, remote

    handlers: dict[str, BuiltinHandler] = {
        "local": local.handle,
        "remote": remote.handle,
        "admin": admin.handle,
        "quit": quit.handle,
        "exit": quit.handle,
    }
    return handlers.get(name)


__all__ = ["BuiltinContext", "BuiltinHandler", "format_shell_line", "get_handler"]
