from __future__ import annotations

from dataclasses import dataclass

from nodevec.nodes import Span


@dataclass(frozen=True)
class Match:
    """One nearest-neighbour hit joined against the span registry."""

    record_id: int
    node_id: str
    start: int
    end: int
    distance: float

    @property
    def span(self) -> Span:
        return Span(self.start, self.end)


@dataclass(frozen=True)
class Record:
    record_id: int
    node_id: str
    start: int
    end: int


@dataclass(frozen=True)
class ReconcileReport:
    """What one reconciliation pass removed."""

    dangling_rows: int = 0
    orphan_vectors: int = 0

    @property
    def clean(self) -> bool:
        return not (self.dangling_rows or self.orphan_vectors)
