from __future__ import annotations

from . import Reply, register
from ...service import NodeIndex


@register
class StatusCommand:
    """Report store location, backend and record counts."""

    command_str = "status"
    usage = "/status"

    @staticmethod
    async def handle(index: NodeIndex, args: str, reply: Reply) -> None:
        stats = await index.status()
        await reply(
            f"Store {stats['path']} ({stats['backend']}, {stats['dimensions']} dims): "
            f"{stats['records']} record(s) across {stats['nodes']} node(s)."
        )


@register
class ReconcileCommand:
    """Remove registry rows without vectors and vectors without registry rows."""

    command_str = "reconcile"
    usage = "/reconcile"

    @staticmethod
    async def handle(index: NodeIndex, args: str, reply: Reply) -> None:
        report = await index.reconcile()
        if report.clean:
            await reply("Store is consistent.")
            return
        await reply(
            f"Repaired store: removed {report.dangling_rows} dangling row(s) "
            f"and {report.orphan_vectors} orphan vector(s)."
        )
