"""Registry: the static name -> entry addressing table."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from psh.shell.spec import LocalSpec, RemoteSpec

logger = logging.getLogger(__name__)

BUILTIN_NAMES = ("local", "remote", "admin", "quit", "exit")


class EntryKind(enum.Enum):
    SHELL = "shell"
    BUILTIN = "builtin"


@dataclass(frozen=True)
class Entry:
    """A registered address: a builtin handler or a shell spec."""

    kind: EntryKind
    spec: LocalSpec | RemoteSpec | None = None

    @classmethod
    def shell(cls, spec: LocalSpec | RemoteSpec) -> Entry:
        return cls(kind=EntryKind.SHELL, spec=spec)

    @classmethod
    def builtin(cls) -> Entry:
        return cls(kind=EntryKind.BUILTIN)

    @property
    def is_shell(self) -> bool:
        return self.kind is EntryKind.SHELL


class Registry:
    """Mapping of case-sensitive names to entries.

    Keeps the length (in characters) of the longest registered name so the
    parser knows how far into a line a prefix separator can possibly be.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Entry] = {}
        self._max_len = 0

    @classmethod
    def with_builtins(cls) -> Registry:
        reg = cls()
        for name in BUILTIN_NAMES:
            reg.register(name, Entry.builtin())
        return reg

    def register(self, name: str, entry: Entry) -> None:
        """Register ``entry`` under ``name``, replacing any previous entry."""
        if name in self._entries:
            logger.warning("Entry %s already registered, overwriting", name)
        self._entries[name] = entry
        self._recompute_max_len()
        logger.debug(
            "Registered %s (%s); %d entries, max name length %d",
            name,
            entry.kind.value,
            len(self._entries),
            self._max_len,
        )

    def unregister(self, name: str) -> None:
        if self._entries.pop(name, None) is None:
            logger.warning("Entry %s not registered, nothing to remove", name)
            return
        self._recompute_max_len()
        logger.debug("Unregistered %s", name)

    def has(self, name: str) -> bool:
        return name in self._entries

    def get(self, name: str) -> Entry | None:
        return self._entries.get(name)

    def get_shell_spec(self, name: str) -> LocalSpec | RemoteSpec | None:
        entry = self._entries.get(name)
        if entry is None or not entry.is_shell:
            return None
        return entry.spec

    def list(self) -> list[tuple[str, Entry]]:
        """All entries, sorted by name."""
        return sorted(self._entries.items())

    def max_name_len(self) -> int:
        return self._max_len

    def _recompute_max_len(self) -> None:
        self._max_len = max((len(k) for k in self._entries), default=0)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries
