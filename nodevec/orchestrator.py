"""
Node embedding orchestrator
===========================

Re-indexes a node with *replace-all* semantics:

``START -> CLEARING -> SEGMENTING -> EMBEDDING -> COMMITTED | FAILED``

Existing records of the node are cleared first, then every span of the
current content is embedded and inserted. Spans are independent: a failed
span never rolls back its siblings, but the update as a whole is reported
as failed once every span has finished.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List

from .embeddings import EmbeddingProvider, request_embedding
from .errors import ConfigurationError, NodeUpdateError, NodevecError
from .nodes import Node, NodeSource, Span
from .segmenter import Segmenter, whole_document
from .store import VectorStore

logger = logging.getLogger(__name__)


class UpdateState(str, Enum):
    START = "start"
    CLEARING = "clearing"
    SEGMENTING = "segmenting"
    EMBEDDING = "embedding"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class UpdateReport:
    """What one :func:`update_node` call did."""

    node_id: str
    state: UpdateState = UpdateState.START
    cleared: int = 0
    spans: List[Span] = field(default_factory=list)
    record_ids: List[int] = field(default_factory=list)
    errors: List[NodevecError] = field(default_factory=list)
    cancelled: int = 0

    @property
    def ok(self) -> bool:
        return self.state is UpdateState.COMMITTED


@dataclass
class BulkReport:
    updated: List[UpdateReport] = field(default_factory=list)
    failed: dict[str, NodevecError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def _embeddable(node: Node, spans: Iterable[Span]) -> List[Span]:
    # Whitespace-only spans carry nothing worth embedding
    return [s for s in spans if node.text(s).strip()]


async def update_node(
    node: Node | None,
    *,
    store: VectorStore,
    provider: EmbeddingProvider,
    segmenter: Segmenter = whole_document,
    concurrency: int = 8,
    cancel: asyncio.Event | None = None,
) -> UpdateReport:
    """
    Replace every stored record of ``node`` with embeddings of its current spans.

    :param node: Node to re-index.
    :param store: Target vector store.
    :param provider: Embedding backend.
    :param segmenter: Strategy that splits the node into spans.
    :param concurrency: Upper bound on embedding requests in flight.
    :param cancel: When set, span requests not yet issued are skipped.
    :returns: :class:`UpdateReport` in state ``COMMITTED``.
    :raises ConfigurationError: ``node`` is missing; nothing is touched.
    :raises NodeUpdateError: At least one span failed; successful spans stay stored.
    """
    if node is None:
        raise ConfigurationError("update_node requires a node")

    report = UpdateReport(node_id=node.id)

    report.state = UpdateState.CLEARING
    report.cleared = await store.clear(node.id)

    report.state = UpdateState.SEGMENTING
    report.spans = _embeddable(node, segmenter(node))

    report.state = UpdateState.EMBEDDING
    sem = asyncio.Semaphore(max(1, concurrency))

    async def _embed_span(span: Span) -> int | None:
        async with sem:
            if cancel is not None and cancel.is_set():
                return None
            result = await request_embedding(provider, node.text(span))
            return await store.insert(node.id, span, result.unwrap())

    outcomes = await asyncio.gather(
        *(_embed_span(span) for span in report.spans), return_exceptions=True
    )

    for span, outcome in zip(report.spans, outcomes):
        if isinstance(outcome, NodevecError):
            logger.error(
                "Span [%d, %d) of node %s failed: %s", span.start, span.end, node.id, outcome
            )
            report.errors.append(outcome)
        elif isinstance(outcome, BaseException):
            raise outcome
        elif outcome is None:
            report.cancelled += 1
        else:
            report.record_ids.append(outcome)

    if report.errors:
        report.state = UpdateState.FAILED
        raise NodeUpdateError(report) from report.errors[0]

    report.state = UpdateState.COMMITTED
    if report.cancelled:
        logger.warning(
            "Update of node %s cancelled; %d span(s) skipped", node.id, report.cancelled
        )
    logger.info(
        "Updated node %s: %d record(s) stored, %d cleared",
        node.id,
        len(report.record_ids),
        report.cleared,
    )
    return report


async def update_all(
    source: NodeSource,
    *,
    store: VectorStore,
    provider: EmbeddingProvider,
    segmenter: Segmenter = whole_document,
    concurrency: int = 8,
    cancel: asyncio.Event | None = None,
) -> BulkReport:
    """
    Re-index every node of ``source``, one node at a time.

    A failing node is logged and recorded in the report; the next node is
    still processed.
    """
    bulk = BulkReport()
    for node in source.iter_nodes():
        if cancel is not None and cancel.is_set():
            logger.warning("Bulk update cancelled before node %s", node.id)
            break
        try:
            report = await update_node(
                node,
                store=store,
                provider=provider,
                segmenter=segmenter,
                concurrency=concurrency,
                cancel=cancel,
            )
        except NodevecError as exc:
            logger.error("Failed to update node %s: %s", node.id, exc)
            bulk.failed[node.id] = exc
        else:
            bulk.updated.append(report)

    logger.info(
        "Bulk update finished: %d node(s) updated, %d failed", len(bulk.updated), len(bulk.failed)
    )
    return bulk


__all__ = ["UpdateState", "UpdateReport", "BulkReport", "update_node", "update_all"]
