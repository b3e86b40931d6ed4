# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for DependencyGraph."""

from typing import Set

from script_atlas.dependency_graph import DependencyGraph
from script_atlas.models import TypeIdentity, TypeMetadata


def _metadata(name: str, dependencies: Set[str]) -> TypeMetadata:
    return TypeMetadata(
        identity=TypeIdentity(f"game.{name}", f"/proj/game/{name}.py"),
        folder_path="/proj/game",
        display_name=name,
        script_name=f"{name}.py",
        base_type_name="None",
        unit_path=f"/proj/game/{name}.py",
        content_id=name.lower(),
        dependencies=dependencies,
    )


class TestDependencyGraph:
    def test_a_depends_on_b(self):
        graph = DependencyGraph.build([_metadata("A", {"B"}), _metadata("B", set())])

        assert graph.nodes == ["A", "B"]
        assert graph.edges() == [("A", "B")]
        assert graph.has_edge("A", "B")
        assert not graph.has_edge("B", "A")
        assert graph.dependencies_of("B") == []
        assert graph.dependents_of("B") == ["A"]

    def test_edges_outside_run_dropped(self):
        graph = DependencyGraph.build([_metadata("A", {"B", "Missing"}), _metadata("B", set())])
        assert graph.dependencies_of("A") == ["B"]
        assert "Missing" not in graph.nodes

    def test_cycles_allowed(self):
        graph = DependencyGraph.build([_metadata("A", {"B"}), _metadata("B", {"A"})])
        assert graph.edges() == [("A", "B"), ("B", "A")]

    def test_empty_run(self):
        graph = DependencyGraph.build([])
        assert graph.nodes == []
        assert graph.edges() == []

    def test_to_dict(self):
        graph = DependencyGraph.build(
            [_metadata("A", {"B", "C"}), _metadata("B", {"C"}), _metadata("C", set())]
        )
        data = graph.to_dict()

        assert data["metadata"]["node_count"] == 3
        assert data["metadata"]["edge_count"] == 3
        assert data["nodes"] == ["A", "B", "C"]
        assert data["edges"] == [
            {"source": "A", "target": "B"},
            {"source": "A", "target": "C"},
            {"source": "B", "target": "C"},
        ]
