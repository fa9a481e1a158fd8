"""
Host collaborator contract
==========================

nodevec never creates or destroys nodes; it only reads them. A host supplies
nodes through any object satisfying :class:`NodeSource`. Two sources ship
with the package: a folder of note files and an in-memory mapping.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Protocol, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Span:
    """Half-open ``[start, end)`` character range into a node's content."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid span ({self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Node:
    """A host document whose content is the source of indexed spans.

    ``body_start`` is the end of the leading metadata region when the host
    knows it; otherwise the segmenter detects it from ``content``.
    """

    id: str
    content: str
    path: str | None = None
    title: str | None = None
    body_start: int | None = None

    def text(self, span: Span) -> str:
        return self.content[span.start:span.end]


class NodeSource(Protocol):
    """What nodevec needs from the host document system."""

    def get_node(self, node_id: str) -> Node | None:
        """Return the node with ``node_id`` or ``None`` when it is unknown."""

    def iter_nodes(self) -> Iterable[Node]:
        """Yield every node known to the host."""


class StaticNodeSource:
    """Serve a fixed set of nodes held in memory."""

    def __init__(self, nodes: Iterable[Node] | Mapping[str, Node] = ()) -> None:
        values = nodes.values() if isinstance(nodes, Mapping) else nodes
        self._nodes: dict[str, Node] = {n.id: n for n in values}

    def add(self, node: Node) -> None:
        self._nodes[node.id] = node

    def remove(self, node_id: str) -> None:
        self._nodes.pop(node_id, None)

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def iter_nodes(self) -> Iterator[Node]:
        return iter(list(self._nodes.values()))


_ORG_ID_RE = re.compile(r"^\s*:ID:\s+(\S+)\s*$", re.MULTILINE)
_ORG_TITLE_RE = re.compile(r"^#\+title:\s*(.+?)\s*$", re.MULTILINE | re.IGNORECASE)
FRONT_MATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---\s*?(?:\r?\n|\Z)", re.DOTALL)
_YAML_FIELD_RE = re.compile(r"^(id|title):\s*(.+?)\s*$", re.MULTILINE)


class DirectoryNodeSource:
    """
    Treat every note file under ``root`` as a node.

    The node id is the Org ``:ID:`` property or the front-matter ``id`` field
    when present, otherwise the file path relative to ``root`` (POSIX form).
    """

    def __init__(self, root: str | Path, suffixes: Sequence[str] = (".org", ".md", ".txt")) -> None:
        self.root = Path(root)
        self.suffixes = tuple(s.lower() for s in suffixes)

    def _files(self) -> list[Path]:
        if not self.root.is_dir():
            logger.warning("Node directory %s does not exist", self.root)
            return []
        return sorted(
            p for p in self.root.rglob("*")
            if p.is_file() and p.suffix.lower() in self.suffixes
        )

    def _load(self, path: Path) -> Node | None:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping unreadable note %s: %s", path, exc)
            return None

        node_id = path.relative_to(self.root).as_posix()
        title = path.stem

        head = content[:4096]
        front = FRONT_MATTER_RE.match(head)
        if front:
            fields = dict(m.groups() for m in _YAML_FIELD_RE.finditer(front.group(1)))
            node_id = fields.get("id", node_id).strip("\"'")
            title = fields.get("title", title).strip("\"'")
        else:
            id_match = _ORG_ID_RE.search(head)
            if id_match:
                node_id = id_match.group(1)
            title_match = _ORG_TITLE_RE.search(head)
            if title_match:
                title = title_match.group(1)

        return Node(id=node_id, content=content, path=str(path), title=title)

    def iter_nodes(self) -> Iterator[Node]:
        for path in self._files():
            node = self._load(path)
            if node is not None:
                yield node

    def _within_root(self, path: Path) -> bool:
        return path.resolve().is_relative_to(self.root.resolve())

    def get_node(self, node_id: str) -> Node | None:
        direct = self.root / node_id
        # Ids are only read as paths when they stay inside the notes directory
        if (
            self._within_root(direct)
            and direct.is_file()
            and direct.suffix.lower() in self.suffixes
        ):
            node = self._load(direct)
            if node is not None and node.id == node_id:
                return node
        for node in self.iter_nodes():
            if node.id == node_id:
                return node
        return None


__all__ = ["Span", "Node", "NodeSource", "StaticNodeSource", "DirectoryNodeSource"]
