"""
nodevec
=======

Embedding lifecycle and vector-store consistency for knowledge-base nodes:
segment a node into spans, embed each span, keep the span registry and the
vector index in step, and answer top-K similarity queries.
"""

from .errors import (
    ConfigurationError,
    NodeUpdateError,
    NodevecError,
    ProviderError,
    StorageError,
)
from .nodes import DirectoryNodeSource, Node, NodeSource, Span, StaticNodeSource
from .embeddings import EmbeddingProvider, EmbeddingResult, request_embedding
from .store import Match, VectorStore
from .orchestrator import BulkReport, UpdateReport, UpdateState, update_all, update_node
from .search import SearchResult, search
from .service import NodeIndex

__version__ = "0.1.0"

__all__ = [
    "NodevecError",
    "ConfigurationError",
    "ProviderError",
    "StorageError",
    "NodeUpdateError",
    "Node",
    "Span",
    "NodeSource",
    "StaticNodeSource",
    "DirectoryNodeSource",
    "EmbeddingProvider",
    "EmbeddingResult",
    "request_embedding",
    "VectorStore",
    "Match",
    "UpdateState",
    "UpdateReport",
    "BulkReport",
    "update_node",
    "update_all",
    "SearchResult",
    "search",
    "NodeIndex",
]
