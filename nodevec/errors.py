"""
Error kinds
===========

Everything raised on purpose by nodevec derives from :class:`NodevecError` so
hosts can catch one type at the command boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .orchestrator import UpdateReport


class NodevecError(Exception):
    """Base class for nodevec failures."""


class ConfigurationError(NodevecError):
    """Missing/invalid node, unknown strategy or backend, dimension mismatch."""


class StorageError(NodevecError):
    """Transaction failure, schema problem or I/O failure in the store."""


class ProviderError(NodevecError):
    """Embedding backend failure.

    :param kind: One of ``network``, ``quota``, ``malformed`` or ``backend``.
    :param message: Backend-specific message.
    """

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.message = message


class NodeUpdateError(NodevecError):
    """One or more spans of a node update failed.

    Spans that succeeded stay persisted; ``report`` lists what happened.
    """

    def __init__(self, report: "UpdateReport") -> None:
        super().__init__(
            f"{len(report.errors)} of {len(report.spans)} span(s) failed for node {report.node_id}"
        )
        self.report = report

    @property
    def errors(self) -> list[NodevecError]:
        return self.report.errors
