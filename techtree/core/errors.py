from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TechTreeError(Exception):
    """Base error envelope. The CLI prints these rather than raw tracebacks."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<tree>"
        return f"{loc}: {self.code}: {self.message}"


class TreeLoadError(TechTreeError):
    pass


class TreeValidationError(TechTreeError):
    pass


class NodeNotFoundError(TechTreeError):
    pass


class SelectionError(TechTreeError):
    pass


class SeedConfigError(TechTreeError):
    pass


class RecordError(TechTreeError):
    pass


def node_not_found(node_id: str, *, path: str = "id") -> NodeNotFoundError:
    return NodeNotFoundError(
        code="E_NODE_NOT_FOUND",
        message=f"no node with id: {node_id}",
        path=path,
    )
