from __future__ import annotations

from . import Reply, register
from ...service import NodeIndex

_PREVIEW = 80


def _preview(text: str) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= _PREVIEW else flat[: _PREVIEW - 3] + "..."


@register
class SearchCommand:
    """List the stored spans most similar to the given text."""

    command_str = "search"
    usage = "/search <text>"

    @staticmethod
    async def handle(index: NodeIndex, args: str, reply: Reply) -> None:
        query = args.strip()
        if not query:
            await reply(f"Usage: {SearchCommand.usage}")
            return

        results = await index.search(query)
        if not results:
            await reply("No matches.")
            return

        lines = [
            f"{rank}. {hit.node.title or hit.node.id} [{hit.span.start}:{hit.span.end}] "
            f"d={hit.distance:.4f}: {_preview(hit.text)}"
            for rank, hit in enumerate(results, start=1)
        ]
        await reply("\n".join(lines))
