"""``quit:`` / ``exit:`` builtin."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from psh.errors import ExitRequested

if TYPE_CHECKING:
    from psh.builtins import BuiltinContext

logger = logging.getLogger(__name__)


async def handle(ctx: BuiltinContext, args: str) -> None:
    logger.info("Quit requested")
    raise ExitRequested()
