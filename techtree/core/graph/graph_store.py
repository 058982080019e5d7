"""Node-set and layout persistence over a key-value store."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from techtree.core.io.kv_store import KeyValueStore
from techtree.core.model import Layout, Tech, TreeSnapshot, layout_to_list, tech_to_dict
from techtree.core.seed.seed_config import DEFAULT_SEED
from techtree.core.validate.validate_tree import validate_layout, validate_nodes

logger = logging.getLogger(__name__)

TECH_DATA_KEY = "@techTree:data"
TECH_LAYOUT_KEY = "@techTree:layout"


@dataclass(frozen=True)
class LoadResult:
    nodes: tuple[Tech, ...]
    layout: Layout
    from_seed: bool


class GraphStore:
    def __init__(self, kv: KeyValueStore, seed: TreeSnapshot = DEFAULT_SEED) -> None:
        self.kv = kv
        self.seed = seed

    def load(self) -> LoadResult:
        """
        Read the node set and the layout.
        An absent blob is replaced by its seed counterpart; any read or parse
        failure falls back to the whole seed. Never raises.
        """
        try:
            raw_nodes = self.kv.get(TECH_DATA_KEY)
            raw_layout = self.kv.get(TECH_LAYOUT_KEY)

            nodes = self.seed.nodes
            layout = self.seed.layout
            if raw_nodes is not None:
                parsed, errors = validate_nodes(json.loads(raw_nodes), file=TECH_DATA_KEY)
                if errors or parsed is None:
                    raise ValueError("; ".join(str(e) for e in errors))
                nodes = parsed
            if raw_layout is not None:
                parsed_layout, errors = validate_layout(json.loads(raw_layout), file=TECH_LAYOUT_KEY)
                if errors or parsed_layout is None:
                    raise ValueError("; ".join(str(e) for e in errors))
                layout = parsed_layout
        except Exception as e:
            logger.warning(f"Failed to load tech tree from storage, using seed graph: {e}")
            return LoadResult(nodes=self.seed.nodes, layout=self.seed.layout, from_seed=True)

        from_seed = raw_nodes is None or raw_layout is None
        if from_seed:
            logger.info("No saved tech tree found, using seed graph")
        else:
            logger.info(f"Loaded tech tree: {len(nodes)} nodes, {len(layout)} columns")
        return LoadResult(nodes=nodes, layout=layout, from_seed=from_seed)

    def persist(self, nodes: Iterable[Tech], layout: Layout) -> bool:
        """
        Write the node set, then the layout.
        Returns True on success, False on failure (logged, not raised).
        """
        try:
            self.kv.set(TECH_DATA_KEY, json.dumps([tech_to_dict(n) for n in nodes], ensure_ascii=False))
            self.kv.set(TECH_LAYOUT_KEY, json.dumps(layout_to_list(layout), ensure_ascii=False))
        except Exception as e:
            logger.error(f"Failed to save tech tree to storage: {e}")
            return False
        return True


def find_by_id(nodes: Iterable[Tech], node_id: str) -> Optional[Tech]:
    for node in nodes:
        if node.id == node_id:
            return node
    return None
