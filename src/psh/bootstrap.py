"""Startup: build the registry and router from config and start shells."""

from __future__ import annotations

import logging
import os
import pwd
from collections.abc import Iterable
from dataclasses import dataclass

from psh.config import PshConfig
from psh.errors import PshError
from psh.registry import Entry, Registry
from psh.repl.router import Router, SessionFactory, SessionListener
from psh.shell.spec import LocalSpec

logger = logging.getLogger(__name__)

FALLBACK_SHELL_NAME = "bash"
FALLBACK_SHELL_PROGRAM = "bash"


@dataclass
class App:
    config: PshConfig
    router: Router
    default_shell: str


def login_shell_name() -> str | None:
    """Program name of the user's login shell (``$SHELL``, then passwd)."""
    path = os.environ.get("SHELL")
    if not path:
        try:
            path = pwd.getpwuid(os.getuid()).pw_shell
        except KeyError:
            return None
    name = os.path.basename(path.rstrip("/"))
    return name or None


def apply_catalog(config: PshConfig, router: Router) -> None:
    for name, spec in config.shells.catalog.items():
        router.register_entry(name, Entry.shell(spec))
        logger.info("Catalog shell %s registered: %r", name, spec)


async def start_registered_shells(router: Router) -> None:
    """Start every shell entry; a failure is logged and the rest still start."""
    for name, entry in router.list_entries():
        if not entry.is_shell:
            continue
        try:
            await router.ensure_shell_session_by_name(name)
        except PshError as exc:
            logger.warning("Eager start of %s failed: %s", name, exc)


async def ensure_fallback_shell(router: Router) -> None:
    entry = router.registry.get(FALLBACK_SHELL_NAME)
    if entry is None or not isinstance(entry.spec, LocalSpec):
        router.register_entry(
            FALLBACK_SHELL_NAME, Entry.shell(LocalSpec(program=FALLBACK_SHELL_PROGRAM))
        )
        logger.info("Fallback shell %s registered", FALLBACK_SHELL_NAME)
    try:
        await router.ensure_shell_session_by_name(FALLBACK_SHELL_NAME)
    except PshError as exc:
        logger.warning("Fallback shell %s failed to start: %s", FALLBACK_SHELL_NAME, exc)


def choose_default_shell(config: PshConfig, router: Router) -> str:
    """First registered name among config, login shell and ``bash``."""
    for candidate in (config.shells.default_shell, login_shell_name()):
        if candidate and router.set_default_mode(candidate):
            return candidate
    if not router.set_default_mode(FALLBACK_SHELL_NAME):
        logger.warning("Fallback default %s is not registered", FALLBACK_SHELL_NAME)
    return FALLBACK_SHELL_NAME


async def bootstrap(
    config: PshConfig,
    cols: int = 80,
    rows: int = 24,
    session_factory: SessionFactory | None = None,
    listeners: Iterable[SessionListener] = (),
) -> App:
    """Register builtins and catalog shells, start them, pick the default.

    ``listeners`` are attached before the first shell starts, so they see
    every session from its first byte of output.
    """
    router = Router(Registry.with_builtins(), cols, rows, session_factory=session_factory)
    for listener in listeners:
        router.add_session_listener(listener)
    logger.info("Router initialized (%dx%d)", cols, rows)

    apply_catalog(config, router)
    await start_registered_shells(router)
    await ensure_fallback_shell(router)

    default_shell = choose_default_shell(config, router)
    logger.info("Default shell: %s", default_shell)
    return App(config=config, router=router, default_shell=default_shell)
