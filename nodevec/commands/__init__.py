"""Command dispatch utilities."""

from __future__ import annotations

import logging
import re
from typing import NamedTuple

from ..errors import NodevecError
from ..service import NodeIndex
from .handlers import CommandHandler, Reply, get as get_handler

logger = logging.getLogger(__name__)

_COMMAND_RE = re.compile(r"/(\w+)(?:\s+(.*))?")


class CommandInvocation(NamedTuple):
    """Resolved command data for downstream consumers."""

    handler: CommandHandler
    name: str
    args: str


def resolve_command(content: str) -> CommandInvocation | None:
    """Return the handler, command name, and args if ``content`` matches."""

    match = _COMMAND_RE.match(content.strip())
    if not match:
        return None

    command, args = match.groups()
    command = (command or "").lower()
    handler = get_handler(command)
    if not handler:
        return None

    return CommandInvocation(handler=handler, name=command, args=(args or "").strip())


async def dispatch(index: NodeIndex, content: str, reply: Reply) -> bool:
    """
    Parse and execute a slash-style command line.

    Errors raised by nodevec are reported through ``reply``; anything else
    propagates. Returns True if a command was handled.
    """

    invocation = resolve_command(content or "")
    if not invocation:
        return False

    handler, command, args = invocation
    logger.info("Dispatching command '%s' with args: %s", command, args)
    try:
        await handler.handle(index, args, reply)
    except NodevecError as exc:
        logger.error("Command '%s' failed: %s", command, exc)
        await reply(f"Error: {exc}")
    return True


__all__ = ["CommandInvocation", "resolve_command", "dispatch"]
