"""
Similarity query engine.

Embeds the query text, asks the store for the nearest spans and resolves
each hit back to its node through the host's :class:`NodeSource`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from .embeddings import EmbeddingProvider, request_embedding
from .nodes import Node, NodeSource, Span
from .store import VectorStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResult:
    node: Node
    span: Span
    distance: float
    record_id: int

    @property
    def text(self) -> str:
        return self.node.text(self.span)


async def search(
    query_text: str,
    *,
    store: VectorStore,
    provider: EmbeddingProvider,
    source: NodeSource,
    k: int = 20,
) -> List[SearchResult]:
    """
    Rank stored spans by similarity to ``query_text``.

    :param query_text: Free text to search for.
    :param k: Maximum number of results.
    :returns: Results by ascending distance; ``[]`` when nothing is stored.
    :raises ProviderError: The query could not be embedded.
    """
    vector = (await request_embedding(provider, query_text)).unwrap()
    matches = await store.query(vector, k)

    results: List[SearchResult] = []
    for match in matches:
        node = source.get_node(match.node_id)
        if node is None:
            logger.warning(
                "Skipping record %d: node %s is no longer available", match.record_id, match.node_id
            )
            continue
        results.append(SearchResult(node, match.span, match.distance, match.record_id))

    logger.info("Search returned %d result(s) (k=%d)", len(results), k)
    return results


__all__ = ["SearchResult", "search"]
