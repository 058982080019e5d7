import json
import logging

from techtree.core.graph.graph_store import TECH_DATA_KEY, TECH_LAYOUT_KEY, GraphStore, find_by_id
from techtree.core.io.kv_store import MemoryKeyValueStore
from techtree.core.model import Tech, TreeSnapshot
from techtree.core.seed.seed_config import DEFAULT_SEED


class _FailingStore(MemoryKeyValueStore):
    def set(self, key: str, value: str) -> None:
        raise OSError("disk full")


def test_empty_store_loads_seed():
    result = GraphStore(MemoryKeyValueStore()).load()
    assert result.from_seed is True
    assert result.nodes == DEFAULT_SEED.nodes
    assert result.layout == DEFAULT_SEED.layout


def test_persist_then_load_round_trips():
    kv = MemoryKeyValueStore()
    store = GraphStore(kv)
    nodes = (
        Tech(id="a", title="A", description="d", full_info="d\n\nmore", unlocks=("b",), status="completed"),
        Tech(id="b", title="B", description="", full_info="", unlocks=(), is_focused=True),
    )
    layout = (("a",), ("b",))

    assert store.persist(nodes, layout) is True
    result = store.load()
    assert result.from_seed is False
    assert result.nodes == nodes
    assert result.layout == layout


def test_stored_records_use_camel_case_and_id_objects():
    kv = MemoryKeyValueStore()
    GraphStore(kv).persist(DEFAULT_SEED.nodes, DEFAULT_SEED.layout)

    records = json.loads(kv.get(TECH_DATA_KEY))
    assert records[0]["fullInfo"].startswith("The first step")
    assert records[0]["isFocused"] is False
    assert json.loads(kv.get(TECH_LAYOUT_KEY))[0] == [{"id": "1"}]


def test_missing_layout_falls_back_to_seed_layout_only():
    nodes = [{"id": "x", "title": "X", "unlocks": []}]
    kv = MemoryKeyValueStore({TECH_DATA_KEY: json.dumps(nodes)})
    result = GraphStore(kv).load()

    assert result.from_seed is True
    assert [n.id for n in result.nodes] == ["x"]
    assert result.layout == DEFAULT_SEED.layout


def test_corrupt_blob_falls_back_to_seed_and_warns(caplog):
    kv = MemoryKeyValueStore({TECH_DATA_KEY: "{not json", TECH_LAYOUT_KEY: "[]"})
    with caplog.at_level(logging.WARNING, logger="techtree"):
        result = GraphStore(kv).load()

    assert result.from_seed is True
    assert result.nodes == DEFAULT_SEED.nodes
    assert "Failed to load tech tree" in caplog.text


def test_invalid_record_falls_back_to_seed():
    bad = [{"id": "x", "title": "X", "status": "done"}]
    kv = MemoryKeyValueStore({TECH_DATA_KEY: json.dumps(bad), TECH_LAYOUT_KEY: "[]"})
    result = GraphStore(kv).load()
    assert result.from_seed is True
    assert result.nodes == DEFAULT_SEED.nodes


def test_custom_seed_is_used():
    seed = TreeSnapshot(
        nodes=(Tech(id="s", title="Start", description="", full_info="", unlocks=()),),
        layout=(("s",),),
    )
    result = GraphStore(MemoryKeyValueStore(), seed=seed).load()
    assert result.nodes == seed.nodes


def test_persist_failure_is_logged_not_raised(caplog):
    store = GraphStore(_FailingStore())
    with caplog.at_level(logging.ERROR, logger="techtree"):
        ok = store.persist(DEFAULT_SEED.nodes, DEFAULT_SEED.layout)
    assert ok is False
    assert "Failed to save tech tree" in caplog.text


def test_find_by_id():
    assert find_by_id(DEFAULT_SEED.nodes, "2.2").title == "Emotion journal"
    assert find_by_id(DEFAULT_SEED.nodes, "9.9") is None
