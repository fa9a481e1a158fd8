from __future__ import annotations

from . import Reply, register
from ...service import NodeIndex


@register
class ClearDbCommand:
    """
    Slash command: ``/clear_db confirm``

    Effect
    ------
    - Drops every stored span and vector and re-creates an empty store.
    - Without the literal ``confirm`` argument nothing is touched.
    """
    command_str = "clear_db"
    usage = "/clear_db confirm"

    @staticmethod
    async def handle(index: NodeIndex, args: str, reply: Reply) -> None:
        confirmed = args.strip().lower() == "confirm"
        if not confirmed:
            await reply(f"This deletes every stored embedding. Run `{ClearDbCommand.usage}` to proceed.")
            return
        await index.clear_db(confirm=True)
        await reply("Embedding store cleared.")
