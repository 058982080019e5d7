from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from techtree.core.errors import TreeLoadError
from techtree.core.model import TreeSnapshot, layout_to_list, tech_to_dict


SCHEMA_VERSION = "0.1.0"


def load_tree(path: str) -> dict[str, Any]:
    """Load a YAML/JSON tree document.

    Returns a dict with keys: schema_version, nodes, layout.
    Does not coerce types; the validator owns shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise TreeLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise TreeLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise TreeLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except TreeLoadError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise TreeLoadError(code=code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise TreeLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    return {
        "schema_version": data.get("schema_version"),
        "nodes": data.get("nodes"),
        "layout": data.get("layout"),
        "__file__": str(p),
    }


def snapshot_to_doc(snapshot: TreeSnapshot) -> dict[str, Any]:
    """Document form of a tree; layout columns are written as plain id lists."""
    return {
        "schema_version": SCHEMA_VERSION,
        "nodes": [tech_to_dict(n) for n in snapshot.nodes],
        "layout": [[ref["id"] for ref in column] for column in layout_to_list(snapshot.layout)],
    }


def dump_tree_yaml(doc: dict[str, Any], path: str) -> None:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        yaml.safe_dump(doc, f, sort_keys=False, default_flow_style=False, allow_unicode=True)
