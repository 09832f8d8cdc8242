"""Exception hierarchy for psh.

Everything raised to a caller of the router derives from :class:`PshError`,
so the input loop can print ``error: <message>`` for any of them and keep
going. :class:`ExitRequested` travels the same path but is a control signal,
not a failure.
"""

from __future__ import annotations


class PshError(Exception):
    """Base class for all psh errors."""


class ExitRequested(PshError):
    """Raised by the ``quit``/``exit`` builtins to end the input loop."""

    def __init__(self) -> None:
        super().__init__("user requested exit")


class ConfigError(PshError):
    """The configuration file could not be read or validated."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"invalid config at {path}: {detail}")


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


class RouterError(PshError):
    """Lookup and addressing failures."""


class UnknownShellError(RouterError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unknown shell: {name}")


class SessionNotRunningError(RouterError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"session is not running: {name}")


class DefaultShellUnsetError(RouterError):
    def __init__(self) -> None:
        super().__init__("default shell is not set")


class DefaultShellUnknownError(RouterError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"default shell is unknown: {name}")


# ---------------------------------------------------------------------------
# Shell sessions
# ---------------------------------------------------------------------------


class ShellError(PshError):
    """Failures of the PTY-backed session engine."""


class ChannelClosedError(ShellError):
    """A command was submitted after the session's writer stopped."""

    def __init__(self, context: str) -> None:
        self.context = context
        super().__init__(f"command channel closed: {context}")


class EventStreamClosed(ShellError):
    """The session's event stream ended; no further events will arrive."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"event stream closed: {name}")


class PtyOpenError(ShellError):
    def __init__(self, detail: str = "") -> None:
        super().__init__(_with_detail("failed to open PTY", detail))


class SpawnError(ShellError):
    def __init__(self, program: str, detail: str = "") -> None:
        self.program = program
        super().__init__(_with_detail(f"failed to spawn {program}", detail))


class CloneReaderError(ShellError):
    def __init__(self, detail: str = "") -> None:
        super().__init__(_with_detail("failed to clone PTY reader", detail))


class TakeWriterError(ShellError):
    def __init__(self, detail: str = "") -> None:
        super().__init__(_with_detail("failed to take PTY writer", detail))


# Runtime failures. These never reach the caller that queued the command;
# they are formatted into Exited reasons and log records.


class WriteError(ShellError):
    def __init__(self, detail: str = "") -> None:
        super().__init__(_with_detail("failed to write to PTY", detail))


class ReadError(ShellError):
    def __init__(self, detail: str = "") -> None:
        super().__init__(_with_detail("failed to read from PTY", detail))


class ResizeError(ShellError):
    def __init__(self, detail: str = "") -> None:
        super().__init__(_with_detail("failed to resize PTY", detail))


class WaitError(ShellError):
    def __init__(self, detail: str = "") -> None:
        super().__init__(_with_detail("failed to wait on child", detail))


# ---------------------------------------------------------------------------
# Builtins
# ---------------------------------------------------------------------------


class BuiltinError(PshError):
    """Failures raised by builtin command handlers."""


class BuiltinUsageError(BuiltinError):
    """A builtin received arguments it does not understand."""

    def __init__(self, builtin: str, args: str) -> None:
        self.builtin = builtin
        self.args_text = args
        super().__init__(f"unrecognized {builtin} command: {args}")


def _with_detail(message: str, detail: str) -> str:
    return f"{message}: {detail}" if detail else message
