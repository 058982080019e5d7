from __future__ import annotations

from collections import Counter
from typing import Iterable, Optional

from techtree.core.errors import TreeValidationError
from techtree.core.model import Layout, Tech


# Consistency rules for a loaded tree. Lint reports; mutations never depend on it.
# - L_DANGLING_UNLOCK: unlocks references an id with no node
# - L_LAYOUT_UNKNOWN_ID: layout references an id with no node
# - L_LAYOUT_MISSING_NODE: node is not placed in any column
# - L_LAYOUT_DUPLICATE_ID: id is placed more than once
# - L_EMPTY_COLUMN: layout column with no ids
# - L_MULTIPLE_FOCUS: more than one focused node
# - L_COLUMN_SKIP: unlocks edge not from column k to column k+1
# - L_CYCLE_DETECTED: unlocks cycle exists


def lint_tree(
    nodes: Iterable[Tech], layout: Layout, *, file: Optional[str] = None
) -> list[TreeValidationError]:
    nodes = list(nodes)
    node_ids = {n.id for n in nodes}
    errors: list[TreeValidationError] = []

    index_of = {n.id: i for i, n in enumerate(nodes)}

    # Rule: dangling unlocks
    for n in nodes:
        for ui, child in enumerate(n.unlocks):
            if child not in node_ids:
                errors.append(
                    TreeValidationError(
                        code="L_DANGLING_UNLOCK",
                        message=f"unlocks references unknown id: {child}",
                        file=file,
                        path=f"nodes[{index_of[n.id]}].unlocks[{ui}]",
                    )
                )

    # Layout placement rules
    column_by_id: dict[str, int] = {}
    placements = Counter(nid for column in layout for nid in column)
    for ci, column in enumerate(layout):
        if not column:
            errors.append(
                TreeValidationError(
                    code="L_EMPTY_COLUMN",
                    message="layout column is empty",
                    file=file,
                    path=f"layout[{ci}]",
                )
            )
        for ri, nid in enumerate(column):
            column_by_id.setdefault(nid, ci)
            if nid not in node_ids:
                errors.append(
                    TreeValidationError(
                        code="L_LAYOUT_UNKNOWN_ID",
                        message=f"layout references unknown id: {nid}",
                        file=file,
                        path=f"layout[{ci}][{ri}]",
                    )
                )

    reported: set[str] = set()
    for nid, count in placements.items():
        if count > 1 and nid not in reported:
            reported.add(nid)
            errors.append(
                TreeValidationError(
                    code="L_LAYOUT_DUPLICATE_ID",
                    message=f"id is placed {count} times: {nid}",
                    file=file,
                    path=f"layout[{column_by_id[nid]}]",
                )
            )

    for n in nodes:
        if n.id not in column_by_id:
            errors.append(
                TreeValidationError(
                    code="L_LAYOUT_MISSING_NODE",
                    message=f"node is not placed in any layout column: {n.id}",
                    file=file,
                    path=f"nodes[{index_of[n.id]}].id",
                )
            )

    # Rule: single focus
    focused = [n.id for n in nodes if n.is_focused]
    if len(focused) > 1:
        errors.append(
            TreeValidationError(
                code="L_MULTIPLE_FOCUS",
                message=f"more than one focused node: {focused}",
                file=file,
                path="nodes",
            )
        )

    # Rule: edges only between adjacent columns
    for n in nodes:
        src = column_by_id.get(n.id)
        if src is None:
            continue
        for ui, child in enumerate(n.unlocks):
            dst = column_by_id.get(child)
            if dst is None or child not in node_ids:
                continue
            if dst != src + 1:
                errors.append(
                    TreeValidationError(
                        code="L_COLUMN_SKIP",
                        message=f"{n.id} (column {src}) unlocks {child} (column {dst})",
                        file=file,
                        path=f"nodes[{index_of[n.id]}].unlocks[{ui}]",
                    )
                )

    # Rule: cycle detection
    adjacency = {n.id: [c for c in n.unlocks if c in node_ids] for n in nodes}
    for nid, msg in _detect_cycles(adjacency):
        errors.append(
            TreeValidationError(
                code="L_CYCLE_DETECTED",
                message=msg,
                file=file,
                path=f"nodes[{index_of.get(nid, 0)}].unlocks",
            )
        )

    return _sorted(errors)


def _detect_cycles(adjacency: dict[str, list[str]]) -> list[tuple[str, str]]:
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {nid: WHITE for nid in adjacency.keys()}
    out: list[tuple[str, str]] = []
    emitted: set[str] = set()

    # Iterative DFS; each frame is (node, iterator over its children).
    for start in list(state.keys()):
        if state[start] != WHITE:
            continue
        stack: list[str] = [start]
        frames = [(start, iter(adjacency.get(start, [])))]
        state[start] = GRAY
        while frames:
            u, children = frames[-1]
            advanced = False
            for v in children:
                if state[v] == GRAY:
                    cycle = stack[stack.index(v):] + [v]
                    key = "->".join(cycle)
                    if key not in emitted:
                        emitted.add(key)
                        out.append((u, "unlock cycle detected: " + " -> ".join(cycle)))
                elif state[v] == WHITE:
                    state[v] = GRAY
                    stack.append(v)
                    frames.append((v, iter(adjacency.get(v, []))))
                    advanced = True
                    break
            if not advanced:
                frames.pop()
                stack.pop()
                state[u] = BLACK

    return out


def _sorted(errors: list[TreeValidationError]) -> list[TreeValidationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
