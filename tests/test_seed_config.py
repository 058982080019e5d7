from pathlib import Path

import pytest

from techtree.core.errors import SeedConfigError
from techtree.core.seed.seed_config import DEFAULT_SEED, load_seed, load_seed_file

EXAMPLES = Path(__file__).resolve().parents[1] / "examples"


def test_default_seed_shape():
    ids = [n.id for n in DEFAULT_SEED.nodes]
    assert ids == ["1", "2.1", "2.2", "2.3", "3.1", "3.2", "4.1"]
    assert DEFAULT_SEED.layout == (("1",), ("2.1", "2.2", "2.3"), ("3.1", "3.2"), ("4.1",))
    assert all(n.status == "pending" and not n.is_focused for n in DEFAULT_SEED.nodes)


def test_default_seed_info_starts_with_description():
    for node in DEFAULT_SEED.nodes:
        assert node.full_info.split("\n")[0] == node.description


def test_load_seed_without_file_is_default():
    assert load_seed(None) is DEFAULT_SEED


def test_load_seed_file():
    seed = load_seed(str(EXAMPLES / "seed-small.yaml"))
    assert [n.id for n in seed.nodes] == ["start", "next"]
    assert seed.layout == (("start",), ("next",))


def test_invalid_seed_file():
    with pytest.raises(SeedConfigError) as exc:
        load_seed_file(EXAMPLES / "invalid-bad-status.yaml")
    assert exc.value.code == "E_SEED_FILE_INVALID"
    assert "E_INVALID_ENUM" in exc.value.message


def test_missing_seed_file():
    with pytest.raises(SeedConfigError) as exc:
        load_seed_file(EXAMPLES / "nope.yaml")
    assert exc.value.code == "E_FILE_NOT_FOUND"
    assert exc.value.path == "seed_file"


def test_empty_seed_is_rejected(tmp_path):
    p = tmp_path / "empty.yaml"
    p.write_text("nodes: []\nlayout: []\n", encoding="utf-8")
    with pytest.raises(SeedConfigError) as exc:
        load_seed_file(p)
    assert exc.value.code == "E_SEED_FILE_INVALID"
