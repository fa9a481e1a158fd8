"""
NodeIndex service
=================

Binds one store, one embedding provider, one node source and one
segmenter, and exposes the user-facing operations::

    async with NodeIndex.from_config() as idx:
        await idx.update_embeddings("notes/today.org")
        for hit in await idx.search("what did I do today"):
            print(hit.node.id, hit.distance)

The service owns the store handle and closes it on exit.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from . import maintenance
from .embeddings import EmbeddingProvider, build_provider
from .errors import ConfigurationError
from .nodes import DirectoryNodeSource, Node, NodeSource
from .orchestrator import BulkReport, UpdateReport, update_all, update_node
from .search import SearchResult, search
from .segmenter import Segmenter, get_strategy, whole_document
from .store import ReconcileReport, VectorStore, build_store

logger = logging.getLogger(__name__)


class NodeIndex:
    def __init__(
        self,
        *,
        store: VectorStore,
        provider: EmbeddingProvider,
        source: NodeSource,
        segmenter: Segmenter = whole_document,
        search_k: int = 20,
        concurrency: int = 8,
    ) -> None:
        self.store = store
        self.provider = provider
        self.source = source
        self.segmenter = segmenter
        self.search_k = search_k
        self.concurrency = concurrency

        self._maintenance_task: asyncio.Task | None = None

    @classmethod
    def from_config(cls, cfg=None, source: NodeSource | None = None) -> "NodeIndex":
        """
        Build a service from configuration sections.

        :param cfg: :class:`nodevec.config.Config`; the process-wide one by default.
        :param source: Node source; defaults to a :class:`DirectoryNodeSource`
            over ``index.NODES_DIR``.
        :raises ConfigurationError: Unknown backend, provider or strategy.
        """
        if cfg is None:
            from .config import config as cfg

        store = build_store(cfg.store, cfg.milvus)
        provider = build_provider(cfg.embedding, cfg.store.DIMENSIONS)
        if source is None:
            source = DirectoryNodeSource(cfg.index.NODES_DIR, cfg.index.NODE_SUFFIXES)

        return cls(
            store=store,
            provider=provider,
            source=source,
            segmenter=get_strategy(cfg.index.SEGMENTER_STRATEGY),
            search_k=cfg.index.SEARCH_K,
            concurrency=cfg.embedding.CONCURRENCY,
        )

    # --- Operations -----------------------------------------------------

    async def update_embeddings(
        self, node: Node | str | None, *, cancel: asyncio.Event | None = None
    ) -> UpdateReport:
        """Re-index one node, given as a :class:`Node` or its id."""
        if isinstance(node, str):
            node_id = node
            node = self.source.get_node(node_id)
            if node is None:
                raise ConfigurationError(f"No node with id {node_id!r}")
        return await update_node(
            node,
            store=self.store,
            provider=self.provider,
            segmenter=self.segmenter,
            concurrency=self.concurrency,
            cancel=cancel,
        )

    async def update_all(self, *, cancel: asyncio.Event | None = None) -> BulkReport:
        return await update_all(
            self.source,
            store=self.store,
            provider=self.provider,
            segmenter=self.segmenter,
            concurrency=self.concurrency,
            cancel=cancel,
        )

    async def clear_db(self, confirm: bool = False) -> bool:
        """
        Drop every stored record and re-create an empty store.

        :param confirm: Must be ``True``; otherwise nothing happens.
        :returns: ``True`` when the store was reset.
        """
        if not confirm:
            logger.warning("clear_db refused without confirmation")
            return False
        await self.store.drop_all()
        return True

    async def search(self, query_text: str, k: int | None = None) -> List[SearchResult]:
        return await search(
            query_text,
            store=self.store,
            provider=self.provider,
            source=self.source,
            k=self.search_k if k is None else k,
        )

    async def reconcile(self) -> ReconcileReport:
        return await self.store.reconcile()

    async def status(self) -> Dict[str, Any]:
        stats = await self.store.stats()
        stats["provider"] = type(self.provider).__name__
        stats["segmenter"] = getattr(self.segmenter, "__name__", repr(self.segmenter))
        stats["maintenance"] = self._maintenance_task is not None
        return stats

    # --- Lifecycle ------------------------------------------------------

    async def start_maintenance(self, interval: float) -> None:
        """Run reconcile and compaction every ``interval`` seconds."""
        if self._maintenance_task is not None:
            return
        self._maintenance_task = await maintenance.startup(
            lambda: maintenance.run_cycle(self.store), interval
        )
        logger.info("Maintenance scheduled every %ss", interval)

    async def stop_maintenance(self) -> None:
        task, self._maintenance_task = self._maintenance_task, None
        await maintenance.shutdown(task)

    async def close(self) -> None:
        await self.stop_maintenance()
        await self.store.close()

    async def __aenter__(self) -> "NodeIndex":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


__all__ = ["NodeIndex"]
