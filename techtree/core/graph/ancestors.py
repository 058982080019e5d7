from __future__ import annotations

from collections import deque
from typing import Iterable

from techtree.core.model import Tech


def build_parent_map(nodes: Iterable[Tech]) -> dict[str, list[str]]:
    """child id -> ids of the nodes whose unlocks list it."""
    parents: dict[str, list[str]] = {}
    for parent in nodes:
        for child_id in parent.unlocks:
            parents.setdefault(child_id, []).append(parent.id)
    return parents


def ancestors_of(node_id: str, parent_map: dict[str, list[str]]) -> frozenset[str]:
    """All transitive prerequisites of node_id (never node_id itself).

    Visited ids are marked before they are enqueued, so cyclic unlocks terminate.
    """
    seen: set[str] = {node_id}
    out: set[str] = set()
    q: deque[str] = deque([node_id])
    while q:
        cur = q.popleft()
        for parent_id in parent_map.get(cur, []):
            if parent_id in seen:
                continue
            seen.add(parent_id)
            out.add(parent_id)
            q.append(parent_id)
    return frozenset(out)


def highlighted_ancestors(nodes: Iterable[Tech]) -> frozenset[str]:
    nodes = list(nodes)
    focused = next((n for n in nodes if n.is_focused), None)
    if focused is None:
        return frozenset()
    return ancestors_of(focused.id, build_parent_map(nodes))
