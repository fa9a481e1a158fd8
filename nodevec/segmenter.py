"""
Document segmentation
=====================

Splits a node's content into the spans that are embedded independently.

A strategy is a plain function ``(node) -> Iterator[Span]``. Calling it again
restarts the scan, so the same content always yields the same spans. Add a
strategy with::

    from nodevec.segmenter import register_strategy

    @register_strategy("sentence")
    def sentences(node): ...

and select it with ``segmenter_strategy = "sentence"`` in the config.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, Iterator

from .errors import ConfigurationError
from .nodes import FRONT_MATTER_RE, Node, Span

Segmenter = Callable[[Node], Iterator[Span]]

PARAGRAPH_BREAK = "\n\n"

_DRAWER_RE = re.compile(
    r"\A[ \t]*:PROPERTIES:[ \t]*\r?\n.*?^[ \t]*:END:[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE | re.IGNORECASE,
)
_KEYWORD_LINE_RE = re.compile(r"[ \t]*#\+[A-Za-z][\w-]*:.*(?:\r?\n|\Z)")

_STRATEGIES: Dict[str, Segmenter] = {}


def metadata_end(content: str) -> int:
    """
    Return the offset where the body starts.

    Recognises YAML front matter, or an Org property drawer followed by any
    number of ``#+KEYWORD:`` lines. Content without metadata starts at 0.
    """
    front = FRONT_MATTER_RE.match(content)
    if front:
        return front.end()

    pos = 0
    drawer = _DRAWER_RE.match(content)
    if drawer:
        pos = drawer.end()

    while pos < len(content):
        keyword = _KEYWORD_LINE_RE.match(content, pos)
        if not keyword:
            break
        pos = keyword.end()
    return pos


def body_start(node: Node) -> int:
    if node.body_start is not None:
        return min(max(node.body_start, 0), len(node.content))
    return metadata_end(node.content)


def register_strategy(name: str) -> Callable[[Segmenter], Segmenter]:
    """Decorator that registers a segmentation strategy under ``name``."""

    def _wrap(fn: Segmenter) -> Segmenter:
        _STRATEGIES[name] = fn
        return fn

    return _wrap


def get_strategy(name: str) -> Segmenter:
    """Return the strategy registered as ``name``."""
    try:
        return _STRATEGIES[name]
    except KeyError:
        known = ", ".join(sorted(_STRATEGIES))
        raise ConfigurationError(
            f"Unknown segmenter strategy: {name!r}. Supported: {known}"
        ) from None


def strategies() -> Dict[str, Segmenter]:
    """Return a copy of the strategy registry."""
    return dict(_STRATEGIES)


@register_strategy("whole")
def whole_document(node: Node) -> Iterator[Span]:
    """One span from the end of the metadata to the end of the content."""
    yield Span(body_start(node), len(node.content))


@register_strategy("paragraph")
def paragraphs(node: Node) -> Iterator[Span]:
    """One span per blank-line separated block of the body."""
    content = node.content
    end = len(content)
    pos = body_start(node)
    while pos < end:
        idx = content.find(PARAGRAPH_BREAK, pos)
        if idx == -1:
            yield Span(pos, end)
            pos = end
        else:
            yield Span(pos, idx)
            pos = idx + len(PARAGRAPH_BREAK)


__all__ = [
    "Segmenter",
    "metadata_end",
    "body_start",
    "register_strategy",
    "get_strategy",
    "strategies",
    "whole_document",
    "paragraphs",
]
