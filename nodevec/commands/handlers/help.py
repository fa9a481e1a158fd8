from __future__ import annotations

from . import Reply, all_commands, register
from ...service import NodeIndex


@register
class HelpCommand:
    """List available slash commands."""

    command_str = "help"
    usage = "/help"

    @staticmethod
    async def handle(index: NodeIndex, args: str, reply: Reply) -> None:
        """
        Send the usage line of every registered command.

        :param index: Service instance (unused).
        :param args: Raw argument string (unused).
        :param reply: Reply coroutine.
        """
        usages = ", ".join(all_commands()[name].usage for name in sorted(all_commands()))
        await reply(f"Available commands: {usages}")
