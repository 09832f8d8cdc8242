"""Addressing state: the sticky ``current`` name and the fallback ``default``."""

from __future__ import annotations

import logging
from threading import Lock

logger = logging.getLogger(__name__)


class _Slot:
    def __init__(self) -> None:
        self._value: str | None = None
        self._lock = Lock()

    def get(self) -> str | None:
        with self._lock:
            return self._value

    def set(self, value: str | None) -> None:
        with self._lock:
            self._value = value


class ModeState:
    """Two independently locked optional names.

    No validation happens here; the router checks registry membership before
    it writes either slot. Reads of ``current`` and ``default`` are not atomic
    with respect to each other.
    """

    def __init__(self, current: str | None = None, default: str | None = None) -> None:
        self._current = _Slot()
        self._default = _Slot()
        self._current.set(current)
        self._default.set(default)

    def get_current(self) -> str | None:
        return self._current.get()

    def set_current(self, name: str | None) -> None:
        logger.debug("current mode -> %s", name)
        self._current.set(name)

    def get_default(self) -> str | None:
        return self._default.get()

    def set_default(self, name: str | None) -> None:
        logger.debug("default mode -> %s", name)
        self._default.set(name)

    def resolve(self) -> str | None:
        """``current`` if set, else ``default``."""
        current = self.get_current()
        return current if current is not None else self.get_default()
