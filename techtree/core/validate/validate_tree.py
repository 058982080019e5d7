from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, Optional, cast

from techtree.core.errors import TreeValidationError
from techtree.core.model import ALLOWED_STATUSES, Layout, NodeStatus, Tech, TreeSnapshot


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def validate_nodes(
    nodes: Any, *, file: Optional[str] = None
) -> tuple[Optional[tuple[Tech, ...]], list[TreeValidationError]]:
    """Validate the node-set blob (list of camelCase node records).

    Returns (nodes, errors). Nodes is None when errors exist.
    Optional fields default the way freshly created nodes do.
    """

    errors: list[TreeValidationError] = []

    if not isinstance(nodes, list):
        errors.append(
            TreeValidationError(
                code="E_REQUIRED_FIELD",
                message="nodes is required and must be an array",
                file=file,
                path="nodes",
            )
        )
        return None, errors

    out: list[Tech] = []
    seen: set[str] = set()

    for i, raw in enumerate(nodes):
        node_path = f"nodes[{i}]"
        if not isinstance(raw, dict):
            errors.append(
                TreeValidationError(
                    code="E_INVALID_TYPE",
                    message="node must be an object",
                    file=file,
                    path=node_path,
                )
            )
            continue

        nid = raw.get("id")
        if not isinstance(nid, str) or not nid.strip():
            errors.append(
                TreeValidationError(
                    code="E_REQUIRED_FIELD",
                    message="id is required and must be a non-empty string",
                    file=file,
                    path=f"{node_path}.id",
                )
            )
            continue

        if nid in seen:
            errors.append(
                TreeValidationError(
                    code="E_DUPLICATE_ID",
                    message=f"duplicate node id: {nid}",
                    file=file,
                    path=f"{node_path}.id",
                )
            )
            continue

        title = raw.get("title")
        if not isinstance(title, str):
            errors.append(
                TreeValidationError(
                    code="E_REQUIRED_FIELD",
                    message="title is required and must be a string",
                    file=file,
                    path=f"{node_path}.title",
                )
            )
            continue

        node_ok = True
        text_fields: dict[str, str] = {}
        for key in ("description", "fullInfo"):
            value = raw.get(key, "")
            if value is None:
                value = ""
            if not isinstance(value, str):
                errors.append(
                    TreeValidationError(
                        code="E_INVALID_TYPE",
                        message=f"{key} must be a string",
                        file=file,
                        path=f"{node_path}.{key}",
                    )
                )
                node_ok = False
            else:
                text_fields[key] = value

        unlocks = raw.get("unlocks", [])
        if unlocks is None:
            unlocks = []
        if not _is_list_of_str(unlocks):
            errors.append(
                TreeValidationError(
                    code="E_INVALID_TYPE",
                    message="unlocks must be an array of strings",
                    file=file,
                    path=f"{node_path}.unlocks",
                )
            )
            node_ok = False

        status = raw.get("status", "pending")
        if not isinstance(status, str) or status not in ALLOWED_STATUSES:
            errors.append(
                TreeValidationError(
                    code="E_INVALID_ENUM",
                    message=f"status must be one of {list(ALLOWED_STATUSES)}",
                    file=file,
                    path=f"{node_path}.status",
                )
            )
            node_ok = False

        is_focused = raw.get("isFocused", False)
        if not isinstance(is_focused, bool):
            errors.append(
                TreeValidationError(
                    code="E_INVALID_TYPE",
                    message="isFocused must be a boolean",
                    file=file,
                    path=f"{node_path}.isFocused",
                )
            )
            node_ok = False

        seen.add(nid)
        if not node_ok:
            continue

        out.append(
            Tech(
                id=nid,
                title=title,
                description=text_fields["description"],
                full_info=text_fields["fullInfo"],
                unlocks=tuple(cast(list[str], unlocks)),
                status=cast(NodeStatus, status),
                is_focused=is_focused,
            )
        )

    if errors:
        return None, _sorted(errors)
    return tuple(out), []


def validate_layout(
    layout: Any, *, file: Optional[str] = None
) -> tuple[Optional[Layout], list[TreeValidationError]]:
    """Validate the layout blob.

    Columns may hold plain id strings or the persisted {"id": ...} objects.
    """

    errors: list[TreeValidationError] = []

    if not isinstance(layout, list):
        errors.append(
            TreeValidationError(
                code="E_REQUIRED_FIELD",
                message="layout is required and must be an array of columns",
                file=file,
                path="layout",
            )
        )
        return None, errors

    columns: list[tuple[str, ...]] = []
    for ci, column in enumerate(layout):
        if not isinstance(column, list):
            errors.append(
                TreeValidationError(
                    code="E_INVALID_TYPE",
                    message="layout column must be an array",
                    file=file,
                    path=f"layout[{ci}]",
                )
            )
            continue

        ids: list[str] = []
        for ri, ref in enumerate(column):
            nid = ref.get("id") if isinstance(ref, dict) else ref
            if not isinstance(nid, str) or not nid.strip():
                errors.append(
                    TreeValidationError(
                        code="E_INVALID_TYPE",
                        message="layout entry must be an id string or {id: string}",
                        file=file,
                        path=f"layout[{ci}][{ri}]",
                    )
                )
                continue
            ids.append(nid)
        columns.append(tuple(ids))

    if errors:
        return None, _sorted(errors)
    return tuple(columns), []


def validate_tree(doc: dict[str, Any]) -> tuple[Optional[TreeSnapshot], list[TreeValidationError]]:
    """Validate a whole tree document ({schema_version, nodes, layout})."""

    file = cast(Optional[str], doc.get("__file__"))
    errors: list[TreeValidationError] = []

    schema_version = doc.get("schema_version")
    if schema_version is not None and (not isinstance(schema_version, str) or not schema_version.strip()):
        errors.append(
            TreeValidationError(
                code="E_INVALID_TYPE",
                message="schema_version must be a non-empty string",
                file=file,
                path="schema_version",
            )
        )

    nodes, node_errors = validate_nodes(doc.get("nodes"), file=file)
    layout, layout_errors = validate_layout(doc.get("layout"), file=file)
    errors.extend(node_errors)
    errors.extend(layout_errors)

    if errors or nodes is None or layout is None:
        return None, _sorted(errors)
    return TreeSnapshot(nodes=nodes, layout=layout), []


def summarize_tree(snapshot: TreeSnapshot) -> str:
    counts = Counter([n.status for n in snapshot.nodes])
    parts = [f"{s}={counts.get(s, 0)}" for s in ALLOWED_STATUSES]
    focused = [n.id for n in snapshot.nodes if n.is_focused]
    return (
        f"OK: {len(snapshot.nodes)} nodes in {len(snapshot.layout)} columns ("
        + ", ".join(parts)
        + ")\nFocus: "
        + (", ".join(focused) if focused else "-")
    )


def _sorted(errors: Iterable[TreeValidationError]) -> list[TreeValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
