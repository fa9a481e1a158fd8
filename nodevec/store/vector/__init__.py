"""Vector index layer.

Backends keyed by the span registry's ``record_id``: an exact index stored in
the same SQLite database, and a Milvus collection for large stores.
"""

from .base import VectorIndex, normalize, to_bytes, from_bytes
from .sqlite_index import SqliteVectorIndex

__all__ = ["VectorIndex", "SqliteVectorIndex", "normalize", "to_bytes", "from_bytes"]
