"""Turn a :data:`ShellSpec` into a running :class:`PTYSession`."""

from __future__ import annotations

import logging

from psh.shell.session import PTYSession
from psh.shell.spec import LocalSpec, RemoteSpec, SshBackend, TelnetBackend

logger = logging.getLogger(__name__)

SSH_PROGRAM = "ssh"
SSH_PTY_FLAG = "-tt"
SSH_PORT_FLAG = "-p"
TELNET_PROGRAM = "telnet"


def build_command(spec: LocalSpec | RemoteSpec) -> list[str]:
    """Concrete argv for ``spec``; the first element is the program."""
    if isinstance(spec, LocalSpec):
        return [spec.program]
    backend = spec.backend
    if isinstance(backend, SshBackend):
        return [
            SSH_PROGRAM,
            SSH_PTY_FLAG,
            SSH_PORT_FLAG,
            str(backend.port),
            *backend.extra_args,
            spec.host,
        ]
    if isinstance(backend, TelnetBackend):
        return [TELNET_PROGRAM, *backend.extra_args, spec.host, str(backend.port)]
    raise TypeError(f"Unsupported remote backend: {backend!r}")


async def spawn(
    name: str, spec: LocalSpec | RemoteSpec, cols: int, rows: int
) -> PTYSession:
    program, *args = build_command(spec)
    session = await PTYSession.spawn(name, program, args, cols=cols, rows=rows)
    logger.info("Shell %s spawned from %r", name, spec)
    return session
