from __future__ import annotations

from pathlib import Path

from techtree.core.errors import SeedConfigError, TreeLoadError
from techtree.core.io.load_tree import load_tree
from techtree.core.model import Tech, TreeSnapshot
from techtree.core.validate.validate_tree import validate_tree


def _seed_node(nid: str, title: str, description: str, body: str, unlocks: tuple[str, ...]) -> Tech:
    return Tech(
        id=nid,
        title=title,
        description=description,
        full_info=f"{description}\n\n{body}",
        unlocks=unlocks,
    )


DEFAULT_SEED = TreeSnapshot(
    nodes=(
        _seed_node(
            "1",
            "Self-reflection",
            "The first step to knowing yourself",
            "Self-reflection means looking closely at your own thoughts, feelings and actions.",
            ("2.1", "2.2", "2.3"),
        ),
        _seed_node(
            "2.1",
            "Defining values",
            "A compass for life",
            "Make clear which values matter most to you.",
            ("3.1",),
        ),
        _seed_node(
            "2.2",
            "Emotion journal",
            "Listening to your inner voice",
            "Recording your feelings every day helps you understand yourself more deeply.",
            ("3.2",),
        ),
        _seed_node(
            "2.3",
            "Finding strengths",
            "Discovering your tools",
            "Knowing and using your strengths is a big boost to self-confidence.",
            ("3.2", "3.1"),
        ),
        _seed_node(
            "3.1",
            "Setting goals",
            "Choosing a direction",
            "Clear and realistic goals are the core of motivation.",
            ("4.1",),
        ),
        _seed_node(
            "3.2",
            "Healthy habits",
            "Balance of body and mind",
            "Regular exercise, a balanced diet and enough sleep are the foundation of a good life.",
            ("4.1",),
        ),
        _seed_node(
            "4.1",
            "Continuous growth",
            "Better today than yesterday",
            "Growth is a journey, not a destination.",
            (),
        ),
    ),
    layout=(
        ("1",),
        ("2.1", "2.2", "2.3"),
        ("3.1", "3.2"),
        ("4.1",),
    ),
)


def load_seed_file(path: str | Path) -> TreeSnapshot:
    """Load a replacement seed graph from a YAML/JSON tree document.

    Format:
      nodes: [{id, title, description, fullInfo, unlocks, status, isFocused}, ...]
      layout: [["1"], ["2.1", "2.2"], ...]
    """
    try:
        doc = load_tree(str(path))
    except TreeLoadError as e:
        raise SeedConfigError(code=e.code, message=e.message, file=e.file, path="seed_file") from e

    snapshot, errors = validate_tree(doc)
    if errors or snapshot is None:
        first = errors[0] if errors else None
        raise SeedConfigError(
            code="E_SEED_FILE_INVALID",
            message=str(first) if first else "seed document is invalid",
            file=str(path),
            path="seed_file",
        )
    if not snapshot.nodes:
        raise SeedConfigError(
            code="E_SEED_FILE_INVALID",
            message="seed must contain at least one node",
            file=str(path),
            path="seed_file",
        )
    return snapshot


def load_seed(seed_file: str | None) -> TreeSnapshot:
    if not seed_file:
        return DEFAULT_SEED
    return load_seed_file(seed_file)
