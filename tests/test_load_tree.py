from pathlib import Path

import pytest

from techtree.core.errors import TreeLoadError
from techtree.core.io.load_tree import SCHEMA_VERSION, dump_tree_yaml, load_tree, snapshot_to_doc
from techtree.core.seed.seed_config import DEFAULT_SEED
from techtree.core.validate.validate_tree import validate_tree

EXAMPLES = Path(__file__).resolve().parents[1] / "examples"


def test_load_yaml_example():
    doc = load_tree(str(EXAMPLES / "basic-tree.yaml"))
    assert doc["schema_version"] == "0.1.0"
    assert isinstance(doc["nodes"], list)
    assert doc["layout"][0] == ["root"]
    assert doc["__file__"].endswith("basic-tree.yaml")


def test_load_json(tmp_path):
    p = tmp_path / "tree.json"
    p.write_text('{"nodes": [], "layout": []}', encoding="utf-8")
    doc = load_tree(str(p))
    assert doc["nodes"] == []
    assert doc["schema_version"] is None


def test_missing_file():
    with pytest.raises(TreeLoadError) as exc:
        load_tree(str(EXAMPLES / "does-not-exist.yaml"))
    assert exc.value.code == "E_FILE_NOT_FOUND"


def test_unsupported_format(tmp_path):
    p = tmp_path / "tree.txt"
    p.write_text("nodes: []", encoding="utf-8")
    with pytest.raises(TreeLoadError) as exc:
        load_tree(str(p))
    assert exc.value.code == "E_UNSUPPORTED_FORMAT"


def test_yaml_parse_error():
    with pytest.raises(TreeLoadError) as exc:
        load_tree(str(EXAMPLES / "invalid-yaml.yaml"))
    assert exc.value.code == "E_YAML_PARSE"


def test_json_parse_error(tmp_path):
    p = tmp_path / "tree.json"
    p.write_text("{", encoding="utf-8")
    with pytest.raises(TreeLoadError) as exc:
        load_tree(str(p))
    assert exc.value.code == "E_JSON_PARSE"


def test_top_level_must_be_mapping(tmp_path):
    p = tmp_path / "tree.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(TreeLoadError) as exc:
        load_tree(str(p))
    assert exc.value.code == "E_INVALID_TOP_LEVEL"


def test_dump_writes_a_loadable_document(tmp_path):
    out = tmp_path / "out" / "tree.yaml"
    doc = snapshot_to_doc(DEFAULT_SEED)
    assert doc["schema_version"] == SCHEMA_VERSION
    assert doc["layout"][1] == ["2.1", "2.2", "2.3"]

    dump_tree_yaml(doc, str(out))
    snapshot, errors = validate_tree(load_tree(str(out)))
    assert errors == []
    assert snapshot == DEFAULT_SEED
