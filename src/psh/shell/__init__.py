"""Shell sessions: specs, the PTY-backed engine, and its command/event types."""

from psh.shell.events import (
    EventBus,
    Exited,
    Output,
    Resize,
    ShellCmd,
    ShellEvent,
    Shutdown,
    Subscription,
    WriteBytes,
    WriteLine,
)
from psh.shell.session import PTYSession, PTYStatus
from psh.shell.spec import (
    LocalSpec,
    RemoteSpec,
    ShellSpec,
    SshBackend,
    TelnetBackend,
    parse_shell_spec,
)

__all__ = [
    "EventBus",
    "Exited",
    "LocalSpec",
    "Output",
    "PTYSession",
    "PTYStatus",
    "RemoteSpec",
    "Resize",
    "ShellCmd",
    "ShellEvent",
    "ShellSpec",
    "Shutdown",
    "SshBackend",
    "Subscription",
    "TelnetBackend",
    "WriteBytes",
    "WriteLine",
    "parse_shell_spec",
]
