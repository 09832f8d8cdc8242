"""Shell specs: immutable descriptions of how to start a session."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

SSH_DEFAULT_PORT = 22
TELNET_DEFAULT_PORT = 23


class SshBackend(BaseModel):
    """Reach the host with the system ``ssh`` client."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["ssh"] = "ssh"
    port: int = Field(default=SSH_DEFAULT_PORT, ge=1, le=65535)
    extra_args: tuple[str, ...] = ()


class TelnetBackend(BaseModel):
    """Reach the host with the system ``telnet`` client."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["telnet"] = "telnet"
    port: int = Field(default=TELNET_DEFAULT_PORT, ge=1, le=65535)
    extra_args: tuple[str, ...] = ()


RemoteBackend = Annotated[Union[SshBackend, TelnetBackend], Field(discriminator="kind")]


class LocalSpec(BaseModel):
    """A program started directly on this machine (no extra arguments)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["local"] = "local"
    program: str = Field(min_length=1)


class RemoteSpec(BaseModel):
    """A remote host reached through an external client program."""

    model_config = ConfigDict(frozen=True)

    type: Literal["remote"] = "remote"
    host: str = Field(min_length=1)
    backend: RemoteBackend = Field(default_factory=SshBackend)

    @property
    def port(self) -> int:
        return self.backend.port


ShellSpec = Annotated[Union[LocalSpec, RemoteSpec], Field(discriminator="type")]

_SPEC_ADAPTER: TypeAdapter[LocalSpec | RemoteSpec] = TypeAdapter(ShellSpec)


def parse_shell_spec(data: object) -> LocalSpec | RemoteSpec:
    """Validate a raw mapping (e.g. from config) into a shell spec."""
    return _SPEC_ADAPTER.validate_python(data)


def describe_spec(spec: LocalSpec | RemoteSpec) -> str:
    if isinstance(spec, LocalSpec):
        return f"local {spec.program}"
    return f"{spec.backend.kind} {spec.host}:{spec.backend.port}"
