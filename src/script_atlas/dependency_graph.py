# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Dependency graph over the types of one collection run.

Edge rule: A -> B exists iff B's name appears as a field type, a method
parameter type or the base type name of A, AND B belongs to the same run.
The introspector already applies this rule when it fills
TypeMetadata.dependencies; this module materializes those sets as a
bidirectional graph and drops anything that does not name a type of the
run, so the graph never holds dangling references.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Set, Tuple

from script_atlas.models import TypeMetadata

logger = logging.getLogger(__name__)

Edge = Tuple[str, str]


class DependencyGraph:
    """Bidirectional graph of type dependencies, keyed by display name.

    Maintains two indices for efficient queries:
    - dependencies: type -> types it depends on
    - dependents: type -> types that depend on it

    Usage:
        graph = DependencyGraph.build(metadata_list)
        graph.dependencies_of("Player")
        graph.to_dict()
    """

    def __init__(self) -> None:
        self._nodes: Set[str] = set()
        self._dependencies: Dict[str, Set[str]] = {}
        self._dependents: Dict[str, Set[str]] = {}

    @classmethod
    def build(cls, metadata: Iterable[TypeMetadata]) -> "DependencyGraph":
        """Build the graph from the metadata of a single collection run."""
        records = list(metadata)
        graph = cls()
        for record in records:
            graph._nodes.add(record.display_name)

        dropped = 0
        for record in records:
            for target in record.dependencies:
                if target not in graph._nodes:
                    dropped += 1
                    continue
                graph._add_edge(record.display_name, target)

        if dropped:
            logger.debug(f"Dropped {dropped} dependencies on types outside the run")
        return graph

    def _add_edge(self, source: str, target: str) -> None:
        self._dependencies.setdefault(source, set()).add(target)
        self._dependents.setdefault(target, set()).add(source)

    @property
    def nodes(self) -> List[str]:
        return sorted(self._nodes)

    def edges(self) -> List[Edge]:
        """All edges as sorted (source, target) pairs."""
        return sorted(
            (source, target)
            for source, targets in self._dependencies.items()
            for target in targets
        )

    def has_edge(self, source: str, target: str) -> bool:
        return target in self._dependencies.get(source, set())

    def dependencies_of(self, name: str) -> List[str]:
        return sorted(self._dependencies.get(name, set()))

    def dependents_of(self, name: str) -> List[str]:
        return sorted(self._dependents.get(name, set()))

    def to_dict(self) -> Dict[str, Any]:
        """Export graph to a JSON-compatible dict.

        Returns:
            Dictionary containing:
            - metadata: timestamp, node and edge counts
            - nodes: sorted type names
            - edges: list of {"source", "target"} dicts
        """
        edges = self.edges()
        return {
            "metadata": {
                "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                "node_count": len(self._nodes),
                "edge_count": len(edges),
            },
            "nodes": self.nodes,
            "edges": [{"source": s, "target": t} for s, t in edges],
        }
