from __future__ import annotations

import logging

from . import Reply, register
from ...errors import NodeUpdateError
from ...service import NodeIndex

logger = logging.getLogger(__name__)


@register
class UpdateCommand:
    """
    Slash command: ``/update <node_id>``

    Effect
    ------
    - Clears the node's stored records and re-embeds its current content.
    - Spans that fail are reported; the ones that succeeded stay stored.
    """
    command_str = "update"
    usage = "/update <node_id>"

    @staticmethod
    async def handle(index: NodeIndex, args: str, reply: Reply) -> None:
        node_id = args.strip()
        if not node_id:
            await reply(f"Usage: {UpdateCommand.usage}")
            return

        try:
            report = await index.update_embeddings(node_id)
        except NodeUpdateError as exc:
            stored = len(exc.report.record_ids)
            await reply(
                f"Updated {node_id} with errors: {stored} span(s) stored, "
                f"{len(exc.errors)} failed ({exc.errors[0]})."
            )
            return

        await reply(f"Updated embeddings for {node_id}: {len(report.record_ids)} span(s) stored.")


@register
class UpdateAllCommand:
    """
    Slash command: ``/update_all``

    Effect
    ------
    - Re-embeds every node of the configured source, one node at a time.
    """
    command_str = "update_all"
    usage = "/update_all"

    @staticmethod
    async def handle(index: NodeIndex, args: str, reply: Reply) -> None:
        bulk = await index.update_all()
        msg = f"Updated {len(bulk.updated)} node(s)."
        if bulk.failed:
            failed = ", ".join(sorted(bulk.failed))
            msg += f" {len(bulk.failed)} failed: {failed}"
        await reply(msg)
