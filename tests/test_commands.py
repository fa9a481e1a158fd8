import pytest

from nodevec import commands
from nodevec.commands.handlers import all_commands
from nodevec.nodes import Node, StaticNodeSource
from nodevec.segmenter import paragraphs
from nodevec.service import NodeIndex


class Replies(list):
    async def __call__(self, text: str) -> None:
        self.append(text)


@pytest.fixture
def index(store, provider):
    source = StaticNodeSource(
        [
            Node(id="greet", content="Hello world.\n\nGoodbye.", title="Greetings"),
            Node(id="other", content="Unrelated note."),
        ]
    )
    return NodeIndex(store=store, provider=provider, source=source, segmenter=paragraphs)


def test_registry_contains_every_command():
    assert set(all_commands()) >= {
        "update",
        "update_all",
        "clear_db",
        "search",
        "status",
        "reconcile",
        "help",
    }


@pytest.mark.parametrize(
    "content, expected",
    [
        ("/update greet", ("update", "greet")),
        ("  /SEARCH  hello there ", ("search", "hello there")),
        ("/clear_db", ("clear_db", "")),
        ("/nope", None),
        ("update greet", None),
    ],
)
def test_resolve_command(content, expected):
    inv = commands.resolve_command(content)
    if expected is None:
        assert inv is None
    else:
        assert (inv.name, inv.args) == expected


@pytest.mark.asyncio
async def test_update_and_search_commands(index):
    replies = Replies()

    assert await commands.dispatch(index, "/update greet", replies)
    assert replies[-1] == "Updated embeddings for greet: 2 span(s) stored."

    assert await commands.dispatch(index, "/search Goodbye.", replies)
    first_line = replies[-1].splitlines()[0]
    assert first_line.startswith("1. Greetings [14:22]")
    assert first_line.endswith("Goodbye.")


@pytest.mark.asyncio
async def test_update_unknown_node_reports_error(index):
    replies = Replies()
    assert await commands.dispatch(index, "/update ghost", replies)
    assert replies[-1].startswith("Error:")


@pytest.mark.asyncio
async def test_update_reports_partial_failure(store, make_provider):
    prov = make_provider(fail_on={"Goodbye.": ConnectionError("reset")})
    idx = NodeIndex(
        store=store,
        provider=prov,
        source=StaticNodeSource([Node(id="greet", content="Hello world.\n\nGoodbye.")]),
        segmenter=paragraphs,
    )
    replies = Replies()

    await commands.dispatch(idx, "/update greet", replies)

    assert replies[-1].startswith("Updated greet with errors: 1 span(s) stored, 1 failed")


@pytest.mark.asyncio
async def test_clear_db_needs_confirm(index):
    replies = Replies()
    await commands.dispatch(index, "/update_all", replies)
    assert replies[-1] == "Updated 2 node(s)."

    await commands.dispatch(index, "/clear_db", replies)
    assert "confirm" in replies[-1]
    assert await index.store.count() == 3

    await commands.dispatch(index, "/clear_db confirm", replies)
    assert replies[-1] == "Embedding store cleared."
    assert await index.store.count() == 0


@pytest.mark.asyncio
async def test_status_reconcile_help(index):
    replies = Replies()
    await commands.dispatch(index, "/update_all", replies)

    await commands.dispatch(index, "/status", replies)
    assert "3 record(s) across 2 node(s)" in replies[-1]

    await commands.dispatch(index, "/reconcile", replies)
    assert replies[-1] == "Store is consistent."

    await commands.dispatch(index, "/help", replies)
    assert replies[-1].startswith("Available commands:")
    assert "/clear_db confirm" in replies[-1]


@pytest.mark.asyncio
async def test_search_without_matches_and_usage(index):
    replies = Replies()
    await commands.dispatch(index, "/search anything", replies)
    assert replies[-1] == "No matches."

    await commands.dispatch(index, "/search", replies)
    assert replies[-1] == "Usage: /search <text>"


@pytest.mark.asyncio
async def test_unknown_command_not_dispatched(index):
    replies = Replies()
    assert not await commands.dispatch(index, "/bogus", replies)
    assert replies == []
