import pytest

from nodevec.errors import ConfigurationError
from nodevec.nodes import Node, Span
from nodevec.segmenter import (
    get_strategy,
    metadata_end,
    paragraphs,
    register_strategy,
    strategies,
    whole_document,
)


def test_whole_document_skips_front_matter():
    content = "---\nid: abc\ntitle: Demo\n---\nBody text.\n"
    node = Node(id="abc", content=content)

    spans = list(whole_document(node))

    assert len(spans) == 1
    assert node.text(spans[0]) == "Body text.\n"
    assert spans[0].end == len(content)


def test_whole_document_skips_org_drawer_and_keywords():
    content = ":PROPERTIES:\n:ID: 1234\n:END:\n#+title: Demo\n#+filetags: :x:\nHello\n"
    node = Node(id="1234", content=content)

    (span,) = list(whole_document(node))

    assert node.text(span) == "Hello\n"


def test_host_supplied_body_start_wins():
    node = Node(id="n", content="meta|body", body_start=5)
    assert list(whole_document(node)) == [Span(5, 9)]


def test_metadata_end_without_metadata_is_zero():
    assert metadata_end("plain text") == 0
    assert metadata_end("") == 0


def test_paragraph_spans_follow_double_newlines():
    content = "Hello world.\n\nGoodbye."
    node = Node(id="n", content=content)

    spans = list(paragraphs(node))

    assert spans == [Span(0, 12), Span(14, 22)]
    assert [node.text(s) for s in spans] == ["Hello world.", "Goodbye."]


def test_paragraph_trailing_break_emits_no_extra_span():
    node = Node(id="n", content="one\n\n")
    assert list(paragraphs(node)) == [Span(0, 3)]


def test_paragraph_consecutive_breaks_yield_empty_span():
    node = Node(id="n", content="a\n\n\n\nb")
    spans = list(paragraphs(node))
    assert [node.text(s) for s in spans] == ["a", "", "b"]


@pytest.mark.parametrize("strategy", [whole_document, paragraphs])
def test_strategies_are_deterministic_and_restartable(strategy):
    node = Node(id="n", content="---\nid: n\n---\nfirst\n\nsecond\n\nthird")
    assert list(strategy(node)) == list(strategy(node))


def test_registry_lookup():
    assert get_strategy("whole") is whole_document
    assert get_strategy("paragraph") is paragraphs
    with pytest.raises(ConfigurationError):
        get_strategy("sentence")


def test_register_custom_strategy():
    @register_strategy("lines-test")
    def lines(node):
        pos = 0
        for line in node.content.splitlines(keepends=True):
            yield Span(pos, pos + len(line.rstrip("\n")))
            pos += len(line)

    try:
        node = Node(id="n", content="a\nbb\n")
        assert list(get_strategy("lines-test")(node)) == [Span(0, 1), Span(2, 4)]
    finally:
        # keep the registry clean for other tests
        from nodevec import segmenter

        segmenter._STRATEGIES.pop("lines-test", None)

    assert "lines-test" not in strategies()
