"""One-line rendering of a registered shell for listings."""

from __future__ import annotations

from rich.text import Text

from psh.shell.spec import LocalSpec, RemoteSpec


def format_shell_line(name: str, spec: LocalSpec | RemoteSpec, running: bool) -> Text:
    line = Text(f"  {name}: ")
    if isinstance(spec, LocalSpec):
        line.append(spec.program)
        status = "[running]" if running else "[stopped]"
    else:
        line.append(f"{spec.host}:{spec.backend.port} ({spec.backend.kind})")
        status = "[connected]" if running else "[disconnected]"
    line.append(" ")
    line.append(status, style="green" if running else "dim")
    return line
