from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Union


NodeStatus = Literal["pending", "inProgress", "completed"]

ALLOWED_STATUSES: tuple[str, ...] = ("pending", "inProgress", "completed")


@dataclass(frozen=True)
class Tech:
    id: str
    title: str
    description: str
    full_info: str
    unlocks: tuple[str, ...]
    status: NodeStatus = "pending"
    is_focused: bool = False


# Columns of node ids, left to right.
Layout = tuple[tuple[str, ...], ...]


@dataclass(frozen=True)
class TreeSnapshot:
    nodes: tuple[Tech, ...]
    layout: Layout


@dataclass(frozen=True)
class MenuClosed:
    pass


@dataclass(frozen=True)
class MenuOpen:
    x: float
    y: float
    target_id: str


MenuState = Union[MenuClosed, MenuOpen]


@dataclass(frozen=True)
class SelectorClosed:
    pass


@dataclass(frozen=True)
class SelectorOpen:
    child_id: str
    candidates: tuple[str, ...]
    checked: frozenset[str]


ParentSelectorState = Union[SelectorClosed, SelectorOpen]


def tech_to_dict(tech: Tech) -> dict[str, Any]:
    """Persisted record shape (camelCase keys, as stored on device)."""
    return {
        "id": tech.id,
        "title": tech.title,
        "description": tech.description,
        "fullInfo": tech.full_info,
        "unlocks": list(tech.unlocks),
        "status": tech.status,
        "isFocused": tech.is_focused,
    }


def layout_to_list(layout: Layout) -> list[list[dict[str, str]]]:
    return [[{"id": nid} for nid in column] for column in layout]


def column_of(layout: Layout, node_id: str) -> int:
    """Index of the column holding node_id, or -1 when it is not placed."""
    for i, column in enumerate(layout):
        if node_id in column:
            return i
    return -1
