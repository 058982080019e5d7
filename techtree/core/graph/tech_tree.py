from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional, cast

from techtree.core.errors import SelectionError, TechTreeError, TreeValidationError, node_not_found
from techtree.core.graph.ancestors import highlighted_ancestors
from techtree.core.graph.graph_store import GraphStore, find_by_id
from techtree.core.graph.ids import IdFactory, allocate_unique_id, random_id
from techtree.core.model import (
    ALLOWED_STATUSES,
    Layout,
    MenuClosed,
    MenuOpen,
    MenuState,
    NodeStatus,
    ParentSelectorState,
    SelectorClosed,
    SelectorOpen,
    Tech,
    TreeSnapshot,
    column_of,
)

logger = logging.getLogger(__name__)

DEFAULT_NEW_TITLE = "New goal"


class TechTree:
    """
    One editable tech tree, owned by whoever opened it.

    Every mutation replaces the in-memory node set and layout first and then
    writes both through the GraphStore. A failed write is logged by the store
    and the in-memory state stays authoritative until the next write.
    `last_persist_ok` reports whether the latest mutation reached storage.

    Selection is tracked by id, so `selected` always reflects the latest
    title, status and info of the selected node.
    """

    def __init__(
        self,
        store: GraphStore,
        nodes: tuple[Tech, ...],
        layout: Layout,
        *,
        id_factory: Optional[IdFactory] = None,
    ) -> None:
        self._store = store
        self._nodes = nodes
        self._layout = layout
        self._id_factory = id_factory or random_id
        self._selected_id: Optional[str] = None
        self._menu: MenuState = MenuClosed()
        self._selector: ParentSelectorState = SelectorClosed()
        self._revision = 0
        self._ancestor_cache: tuple[int, frozenset[str]] = (-1, frozenset())
        self._closed = False
        self.last_persist_ok = True

    @classmethod
    def open(cls, store: GraphStore, *, id_factory: Optional[IdFactory] = None) -> "TechTree":
        loaded = store.load()
        tree = cls(store, loaded.nodes, loaded.layout, id_factory=id_factory)
        if loaded.from_seed:
            store.persist(tree._nodes, tree._layout)
        return tree

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> "TechTree":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # --- read side -------------------------------------------------------

    @property
    def nodes(self) -> tuple[Tech, ...]:
        return self._nodes

    @property
    def layout(self) -> Layout:
        return self._layout

    @property
    def snapshot(self) -> TreeSnapshot:
        return TreeSnapshot(nodes=self._nodes, layout=self._layout)

    @property
    def selected(self) -> Optional[Tech]:
        if self._selected_id is None:
            return None
        return find_by_id(self._nodes, self._selected_id)

    @property
    def focused(self) -> Optional[Tech]:
        return next((n for n in self._nodes if n.is_focused), None)

    @property
    def menu(self) -> MenuState:
        return self._menu

    @property
    def parent_selector(self) -> ParentSelectorState:
        return self._selector

    @property
    def highlighted_ancestor_ids(self) -> frozenset[str]:
        rev, cached = self._ancestor_cache
        if rev != self._revision:
            cached = highlighted_ancestors(self._nodes)
            self._ancestor_cache = (self._revision, cached)
        return cached

    def find_by_id(self, node_id: str) -> Optional[Tech]:
        return find_by_id(self._nodes, node_id)

    # --- view state ------------------------------------------------------

    def select(self, node_id: str) -> Tech:
        node = self._require(node_id)
        self._selected_id = node_id
        return node

    def clear_selection(self) -> None:
        self._selected_id = None

    def open_menu(self, node_id: str, x: float, y: float) -> MenuOpen:
        self._require(node_id)
        self._menu = MenuOpen(x=x, y=y, target_id=node_id)
        return self._menu

    def close_menu(self) -> None:
        self._menu = MenuClosed()

    # --- mutations -------------------------------------------------------

    def set_title(self, node_id: str, text: str) -> Tech:
        node = self._require(node_id)
        updated = replace(node, title=text)
        self._commit(self._replace_node(updated), self._layout)
        return updated

    def set_info(self, text: str) -> Tech:
        """Set fullInfo of the selected node; its description becomes the first line."""
        node = self.selected
        if node is None:
            raise SelectionError(
                code="E_NO_SELECTION",
                message="select a node before editing its info",
                path="selected",
            )
        first_line = text.split("\n")[0]
        updated = replace(node, full_info=text, description=first_line)
        self._commit(self._replace_node(updated), self._layout)
        return updated

    def set_status(self, node_id: str, status: str) -> Tech:
        if status not in ALLOWED_STATUSES:
            raise TreeValidationError(
                code="E_INVALID_ENUM",
                message=f"status must be one of {list(ALLOWED_STATUSES)}, got {status}",
                path="status",
            )
        node = self._require(node_id)
        updated = replace(node, status=cast(NodeStatus, status))
        self._commit(self._replace_node(updated), self._layout)
        return updated

    def set_focus(self, node_id: str) -> Tech:
        self._require(node_id)
        nodes = tuple(
            n if n.is_focused == (n.id == node_id) else replace(n, is_focused=n.id == node_id)
            for n in self._nodes
        )
        self._commit(nodes, self._layout)
        self._menu = MenuClosed()
        logger.debug(f"Focus moved to {node_id}")
        return self._require(node_id)

    def add_node(self, parent_id: str, *, title: str = DEFAULT_NEW_TITLE) -> Tech:
        """
        Create a pending node unlocked by parent_id and place it one column to
        the right of the parent, appending a column when the parent is last.
        """
        self._require(parent_id, path="parent_id")

        existing = {n.id for n in self._nodes}
        new_id = allocate_unique_id(existing, self._id_factory())
        new_node = Tech(
            id=new_id,
            title=title,
            description="",
            full_info="",
            unlocks=(),
            status="pending",
            is_focused=False,
        )

        nodes = tuple(
            replace(n, unlocks=n.unlocks + (new_id,)) if n.id == parent_id else n for n in self._nodes
        ) + (new_node,)

        # An unplaced parent counts as column -1, so its child lands in column 0.
        target = column_of(self._layout, parent_id) + 1
        columns = [list(col) for col in self._layout]
        if target >= len(columns):
            columns.append([])
        columns[target].append(new_id)

        self._commit(nodes, tuple(tuple(col) for col in columns))
        self._menu = MenuClosed()
        logger.info(f"Added node {new_id} under {parent_id}")
        return new_node

    def delete_node(self, node_id: str) -> None:
        """
        Remove a node, every unlocks edge pointing at it and its layout slot.
        Descendants are kept; columns left empty are dropped.
        """
        self._require(node_id)

        nodes = tuple(
            replace(n, unlocks=tuple(c for c in n.unlocks if c != node_id)) if node_id in n.unlocks else n
            for n in self._nodes
            if n.id != node_id
        )
        layout = tuple(
            col
            for col in (tuple(c for c in column if c != node_id) for column in self._layout)
            if col
        )

        self._commit(nodes, layout)
        if self._selected_id == node_id:
            self._selected_id = None
        if isinstance(self._selector, SelectorOpen) and (
            self._selector.child_id == node_id or node_id in self._selector.candidates
        ):
            self._selector = SelectorClosed()
        self._menu = MenuClosed()
        logger.info(f"Deleted node {node_id}")

    def open_parent_selector(self, child_id: str) -> ParentSelectorState:
        """
        Offer the nodes of the column left of child_id as candidate parents,
        pre-checking those that already unlock it. A child in the first
        column (or outside the layout) has no candidates and nothing opens.
        """
        self._require(child_id)
        self._menu = MenuClosed()

        col = column_of(self._layout, child_id)
        if col <= 0:
            return self._selector

        candidates = tuple(nid for nid in self._layout[col - 1] if self.find_by_id(nid) is not None)
        checked = frozenset(
            nid for nid in candidates if child_id in self._require(nid).unlocks
        )
        self._selector = SelectorOpen(child_id=child_id, candidates=candidates, checked=checked)
        return self._selector

    def toggle_parent_selection(self, parent_id: str) -> SelectorOpen:
        selector = self._open_selector()
        if parent_id not in selector.candidates:
            raise SelectionError(
                code="E_NOT_A_CANDIDATE",
                message=f"{parent_id} is not a candidate parent of {selector.child_id}",
                path="parent_id",
            )
        checked = set(selector.checked)
        if parent_id in checked:
            checked.remove(parent_id)
        else:
            checked.add(parent_id)
        self._selector = replace(selector, checked=frozenset(checked))
        return self._selector

    def commit_parent_selection(self) -> None:
        """Make each candidate unlock the child exactly when it is checked."""
        selector = self._open_selector()
        child_id = selector.child_id
        candidates = set(selector.candidates)

        nodes: list[Tech] = []
        for n in self._nodes:
            if n.id not in candidates:
                nodes.append(n)
                continue
            unlocks = _dedupe(n.unlocks)
            if n.id in selector.checked:
                if child_id not in unlocks:
                    unlocks.append(child_id)
            else:
                unlocks = [c for c in unlocks if c != child_id]
            nodes.append(replace(n, unlocks=tuple(unlocks)) if tuple(unlocks) != n.unlocks else n)

        self._commit(tuple(nodes), self._layout)
        self._selector = SelectorClosed()
        logger.info(f"Rewired parents of {child_id}: {sorted(selector.checked)}")

    def close_parent_selector(self) -> None:
        self._selector = SelectorClosed()

    def replace_all(self, snapshot: TreeSnapshot) -> None:
        """Swap in a whole tree (import/reset); view state is cleared."""
        self._commit(snapshot.nodes, snapshot.layout)
        self._selected_id = None
        self._menu = MenuClosed()
        self._selector = SelectorClosed()

    # --- internals -------------------------------------------------------

    def _require(self, node_id: str, *, path: str = "id") -> Tech:
        node = find_by_id(self._nodes, node_id)
        if node is None:
            raise node_not_found(node_id, path=path)
        return node

    def _open_selector(self) -> SelectorOpen:
        if not isinstance(self._selector, SelectorOpen):
            raise SelectionError(
                code="E_SELECTOR_CLOSED",
                message="parent selector is not open",
                path="parent_selector",
            )
        return self._selector

    def _replace_node(self, updated: Tech) -> tuple[Tech, ...]:
        return tuple(updated if n.id == updated.id else n for n in self._nodes)

    def _commit(self, nodes: tuple[Tech, ...], layout: Layout) -> None:
        if self._closed:
            raise TechTreeError(code="E_SESSION_CLOSED", message="tech tree session is closed")
        self._nodes = nodes
        self._layout = layout
        self._revision += 1
        self.last_persist_ok = self._store.persist(self._nodes, self._layout)


def _dedupe(ids: tuple[str, ...]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for i in ids:
        if i not in seen:
            out.append(i)
            seen.add(i)
    return out
