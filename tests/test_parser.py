"""Tests for psh.repl.parser."""

from __future__ import annotations

import pytest

from psh.registry import Entry, Registry
from psh.repl.parser import ParsedDefault, ParsedEntry, parse
from psh.shell.spec import LocalSpec


@pytest.fixture
def registry() -> Registry:
    reg = Registry.with_builtins()
    reg.register("bash", Entry.shell(LocalSpec(program="bash")))
    return reg


class TestParseEntry:
    def test_shell_prefix(self, registry: Registry) -> None:
        parsed = parse(registry, "bash: ls -la")
        assert isinstance(parsed, ParsedEntry)
        assert parsed.name == "bash"
        assert parsed.command == "ls -la"
        assert parsed.entry.is_shell

    def test_builtin_prefix(self, registry: Registry) -> None:
        parsed = parse(registry, "local: list")
        assert parsed == ParsedEntry(name="local", entry=Entry.builtin(), command="list")

    def test_remainder_is_stripped(self, registry: Registry) -> None:
        parsed = parse(registry, "bash:    echo hi   ")
        assert isinstance(parsed, ParsedEntry)
        assert parsed.command == "echo hi"

    def test_prefix_only(self, registry: Registry) -> None:
        parsed = parse(registry, "quit:")
        assert isinstance(parsed, ParsedEntry)
        assert parsed.name == "quit"
        assert parsed.command == ""

    def test_later_colons_kept_in_command(self, registry: Registry) -> None:
        parsed = parse(registry, "bash: echo a:b:c")
        assert isinstance(parsed, ParsedEntry)
        assert parsed.command == "echo a:b:c"

    def test_colon_at_max_len_boundary(self) -> None:
        reg = Registry()
        reg.register("abc", Entry.builtin())
        parsed = parse(reg, "abc:x")
        assert isinstance(parsed, ParsedEntry)
        assert parsed.command == "x"


class TestParseDefault:
    def test_no_colon(self, registry: Registry) -> None:
        assert parse(registry, "  ls -la  ") == ParsedDefault(command="ls -la")

    def test_unknown_prefix(self, registry: Registry) -> None:
        assert parse(registry, "zsh: ls") == ParsedDefault(command="zsh: ls")

    def test_only_first_colon_is_tried(self, registry: Registry) -> None:
        # "x" is unknown, so "x:bash" is never retried as a prefix
        assert parse(registry, "x:bash: ls") == ParsedDefault(command="x:bash: ls")

    def test_prefix_is_case_sensitive(self, registry: Registry) -> None:
        assert isinstance(parse(registry, "BASH: ls"), ParsedDefault)

    def test_leading_space_is_not_trimmed_from_prefix(self, registry: Registry) -> None:
        assert isinstance(parse(registry, " bash: ls"), ParsedDefault)

    def test_colon_beyond_longest_name(self, registry: Registry) -> None:
        line = "echo " + "x" * 20 + ": done"
        assert parse(registry, line) == ParsedDefault(command=line)

    def test_empty_registry(self) -> None:
        assert parse(Registry(), "bash: ls") == ParsedDefault(command="bash: ls")

    def test_empty_line(self, registry: Registry) -> None:
        assert parse(registry, "") == ParsedDefault(command="")
