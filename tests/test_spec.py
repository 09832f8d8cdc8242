"""Tests for psh.shell.spec (LocalSpec, RemoteSpec, backends)."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from psh.shell.spec import (
    LocalSpec,
    RemoteSpec,
    SshBackend,
    TelnetBackend,
    describe_spec,
    parse_shell_spec,
)


class TestLocalSpec:
    def test_program(self) -> None:
        spec = LocalSpec(program="zsh")
        assert spec.type == "local"
        assert spec.program == "zsh"

    def test_empty_program_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LocalSpec(program="")

    def test_frozen(self) -> None:
        spec = LocalSpec(program="zsh")
        with pytest.raises(ValidationError):
            spec.program = "bash"

    def test_equality_and_hash(self) -> None:
        assert LocalSpec(program="sh") == LocalSpec(program="sh")
        assert hash(LocalSpec(program="sh")) == hash(LocalSpec(program="sh"))


class TestRemoteSpec:
    def test_defaults_to_ssh_port_22(self) -> None:
        spec = RemoteSpec(host="user@box")
        assert isinstance(spec.backend, SshBackend)
        assert spec.port == 22
        assert spec.backend.extra_args == ()

    def test_telnet_default_port(self) -> None:
        spec = RemoteSpec(host="router", backend=TelnetBackend())
        assert spec.port == 23

    def test_port_range(self) -> None:
        with pytest.raises(ValidationError):
            SshBackend(port=0)
        with pytest.raises(ValidationError):
            TelnetBackend(port=70000)


class TestParseShellSpec:
    def test_local(self) -> None:
        assert parse_shell_spec({"type": "local", "program": "fish"}) == LocalSpec(program="fish")

    def test_remote_with_backend(self) -> None:
        spec = parse_shell_spec(
            {
                "type": "remote",
                "host": "me@box",
                "backend": {"kind": "ssh", "port": 2222, "extra_args": ["-A"]},
            }
        )
        assert isinstance(spec, RemoteSpec)
        assert spec.backend == SshBackend(port=2222, extra_args=("-A",))

    def test_remote_telnet(self) -> None:
        spec = parse_shell_spec(
            {"type": "remote", "host": "sw1", "backend": {"kind": "telnet"}}
        )
        assert isinstance(spec.backend, TelnetBackend)

    def test_unknown_type(self) -> None:
        with pytest.raises(ValidationError):
            parse_shell_spec({"type": "serial", "device": "/dev/ttyS0"})

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValidationError):
            parse_shell_spec({"type": "remote", "host": "h", "backend": {"kind": "mosh"}})

    def test_dump_round_trip(self) -> None:
        spec = RemoteSpec(host="h", backend=TelnetBackend(port=2323))
        assert parse_shell_spec(spec.model_dump()) == spec


class TestDescribeSpec:
    def test_local(self) -> None:
        assert describe_spec(LocalSpec(program="zsh")) == "local zsh"

    def test_remote(self) -> None:
        assert describe_spec(RemoteSpec(host="box")) == "ssh box:22"
