import pytest

from nodevec.errors import ProviderError
from nodevec.nodes import Node, StaticNodeSource
from nodevec.orchestrator import update_node
from nodevec.search import search
from nodevec.segmenter import paragraphs


@pytest.mark.asyncio
async def test_paragraph_node_end_to_end(store, provider):
    node = Node(id="n1", content="Hello world.\n\nGoodbye.")
    source = StaticNodeSource([node])

    report = await update_node(node, store=store, provider=provider, segmenter=paragraphs)
    assert len(report.record_ids) == 2

    results = await search("Goodbye.", store=store, provider=provider, source=source, k=20)

    assert len(results) == 2
    assert results[0].text == "Goodbye."
    assert (results[0].span.start, results[0].span.end) == (14, 22)
    assert results[0].distance == pytest.approx(0.0, abs=1e-5)
    assert results[1].text == "Hello world."
    assert results[0].distance <= results[1].distance
    assert all(r.node is node for r in results)


@pytest.mark.asyncio
async def test_search_empty_store_returns_nothing(store, provider):
    assert await search("anything", store=store, provider=provider, source=StaticNodeSource()) == []


@pytest.mark.asyncio
async def test_search_skips_nodes_the_host_no_longer_has(store, provider):
    kept = Node(id="kept", content="kept text")
    gone = Node(id="gone", content="gone text")
    source = StaticNodeSource([kept, gone])
    for node in (kept, gone):
        await update_node(node, store=store, provider=provider)

    source.remove("gone")
    results = await search("gone text", store=store, provider=provider, source=source)

    assert [r.node.id for r in results] == ["kept"]


@pytest.mark.asyncio
async def test_search_respects_k(store, provider):
    node = Node(id="n", content="\n\n".join(f"para {i}" for i in range(6)))
    await update_node(node, store=store, provider=provider, segmenter=paragraphs)

    results = await search("para 3", store=store, provider=provider, source=StaticNodeSource([node]), k=3)

    assert len(results) == 3
    assert results[0].text == "para 3"


@pytest.mark.asyncio
async def test_search_provider_failure_propagates(store, make_provider):
    prov = make_provider(fail_on={"q": TimeoutError()})
    with pytest.raises(ProviderError) as excinfo:
        await search("q", store=store, provider=prov, source=StaticNodeSource())
    assert excinfo.value.kind == "network"
