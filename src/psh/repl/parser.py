"""Input line parser: split ``<name>: <command>`` from default-routed input."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from psh.registry import Entry, Registry

logger = logging.getLogger(__name__)

SEPARATOR = ":"


@dataclass(frozen=True)
class ParsedEntry:
    """Input addressed explicitly to a registered name."""

    name: str
    entry: Entry
    command: str


@dataclass(frozen=True)
class ParsedDefault:
    """Input without a recognised prefix; routed to the current/default shell."""

    command: str


Parsed = Union[ParsedEntry, ParsedDefault]


def parse(registry: Registry, line: str) -> Parsed:
    """Parse one input line against ``registry``.

    Only the first ``:`` is ever considered. If the text before it is not a
    registered name the whole line is default-routed; later colons are not
    tried. A colon further in than the longest registered name (plus the
    colon itself) cannot start a match, so scanning stops there.
    """
    max_len = registry.max_name_len()
    if max_len == 0:
        logger.debug("parse: registry empty, default route")
        return ParsedDefault(command=line.strip())

    for idx, ch in enumerate(line):
        if idx > max_len:
            logger.debug("parse: no separator within %d chars", max_len + 1)
            break
        if ch == SEPARATOR:
            name = line[:idx]
            entry = registry.get(name)
            if entry is None:
                logger.debug("parse: %r is not a registered name", name)
                break
            return ParsedEntry(name=name, entry=entry, command=line[idx + 1 :].strip())

    return ParsedDefault(command=line.strip())
