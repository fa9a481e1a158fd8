import pytest

from nodevec.nodes import DirectoryNodeSource, Node, Span, StaticNodeSource


def test_span_rejects_inverted_bounds():
    with pytest.raises(ValueError):
        Span(5, 2)
    with pytest.raises(ValueError):
        Span(-1, 2)
    assert len(Span(2, 5)) == 3


def test_static_source_roundtrip():
    a = Node(id="a", content="alpha")
    src = StaticNodeSource([a])
    src.add(Node(id="b", content="beta"))

    assert src.get_node("a") is a
    assert sorted(n.id for n in src.iter_nodes()) == ["a", "b"]

    src.remove("a")
    assert src.get_node("a") is None


def test_directory_source_ids(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "plain.md").write_text("Just text\n", encoding="utf-8")
    (tmp_path / "sub" / "roam.org").write_text(
        ":PROPERTIES:\n:ID: 6f1c-uuid\n:END:\n#+title: Roam Note\nbody\n", encoding="utf-8"
    )
    (tmp_path / "front.md").write_text(
        "---\nid: front-id\ntitle: \"Front\"\n---\nbody\n", encoding="utf-8"
    )
    (tmp_path / "ignored.bin").write_bytes(b"\x00\x01")

    src = DirectoryNodeSource(tmp_path)
    nodes = {n.id: n for n in src.iter_nodes()}

    assert set(nodes) == {"plain.md", "6f1c-uuid", "front-id"}
    assert nodes["6f1c-uuid"].title == "Roam Note"
    assert nodes["front-id"].title == "Front"
    assert nodes["plain.md"].path == str(tmp_path / "plain.md")


def test_directory_source_get_node(tmp_path):
    (tmp_path / "a.org").write_text(":PROPERTIES:\n:ID: alpha\n:END:\nA\n", encoding="utf-8")
    (tmp_path / "b.txt").write_text("B\n", encoding="utf-8")

    src = DirectoryNodeSource(tmp_path)

    assert src.get_node("b.txt").content == "B\n"
    assert src.get_node("alpha").path == str(tmp_path / "a.org")
    # a file path whose node carries another id is not that id
    assert src.get_node("a.org") is None
    assert src.get_node("missing") is None


def test_directory_source_missing_root(tmp_path):
    src = DirectoryNodeSource(tmp_path / "nope")
    assert list(src.iter_nodes()) == []


def test_directory_source_ignores_paths_outside_root(tmp_path):
    notes = tmp_path / "notes"
    notes.mkdir()
    (notes / "inside.md").write_text("inside\n", encoding="utf-8")
    (tmp_path / "secret.md").write_text("outside\n", encoding="utf-8")

    src = DirectoryNodeSource(notes)

    assert src.get_node("../secret.md") is None
    assert src.get_node(str(tmp_path / "secret.md")) is None
    assert src.get_node("inside.md").content == "inside\n"
