# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for scene documents and document sources."""

import threading
import time

import pytest
from sample_types import Player

from script_atlas.documents import (
    ComponentRef,
    DocumentOpenError,
    InMemoryDocumentSource,
    SceneNode,
    YamlDocumentSource,
    YamlNode,
    write_yaml_document,
)
from script_atlas.introspection import full_type_name


class TestComponentRef:
    def test_of_uses_exact_runtime_type(self):
        ref = ComponentRef.of(Player())
        assert ref.type_name == full_type_name(Player)

    def test_equality(self):
        assert ComponentRef("a.B") == ComponentRef("a.B")
        assert ComponentRef("a.B") != ComponentRef("a.C")
        assert len({ComponentRef("a.B"), ComponentRef("a.B")}) == 1


class TestSceneNode:
    def test_round_trip(self):
        root = SceneNode("Root", components=[ComponentRef("game.Player")])
        root.add_child(SceneNode("Child"))

        restored = SceneNode.from_dict(root.to_dict())

        assert restored.name == "Root"
        assert list(restored.components()) == [ComponentRef("game.Player")]
        assert [c.name for c in restored.children()] == ["Child"]

    def test_to_dict_omits_empty_lists(self):
        assert SceneNode("Leaf").to_dict() == {"name": "Leaf"}

    def test_from_dict_rejects_malformed(self):
        with pytest.raises(ValueError):
            SceneNode.from_dict({"name": 3})


class TestYamlNode:
    def test_component_shorthand(self):
        node = YamlNode({"name": "N", "components": ["a.B", {"type": "a.C"}]})
        assert [c.type_name for c in node.components()] == ["a.B", "a.C"]

    def test_validation_is_lazy(self):
        node = YamlNode({"name": "N", "components": [42], "children": [{"name": "Kid"}]})
        assert [c.name for c in node.children()] == ["Kid"]
        with pytest.raises(ValueError):
            node.components()

    def test_non_mapping_node(self):
        with pytest.raises(ValueError):
            YamlNode(["not", "a", "node"]).name


class TestInMemoryDocumentSource:
    def test_open_yields_roots(self, world_source):
        with world_source.open("world1") as roots:
            assert [r.name for r in roots] == ["Root"]
        assert world_source.list_documents() == ["world1", "world2"]

    def test_unknown_document(self, world_source):
        with pytest.raises(DocumentOpenError):
            with world_source.open("missing"):
                pass

    def test_open_count_includes_failures(self, world_source):
        with world_source.open("world1"):
            pass
        with pytest.raises(DocumentOpenError):
            with world_source.open("missing"):
                pass
        assert world_source.open_count == 2

    def test_document_held_exclusively(self, world_source):
        events = []

        def hold(tag: str) -> None:
            with world_source.open("world1"):
                events.append(f"{tag}-enter")
                time.sleep(0.05)
                events.append(f"{tag}-exit")

        threads = [threading.Thread(target=hold, args=(tag,)) for tag in ("a", "b")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Each holder exits before the other enters
        assert events[0].split("-")[0] == events[1].split("-")[0]
        assert events[2].split("-")[0] == events[3].split("-")[0]

    def test_released_after_error_in_body(self, world_source):
        with pytest.raises(RuntimeError):
            with world_source.open("world1"):
                raise RuntimeError("traversal blew up")
        with world_source.open("world1") as roots:
            assert roots


class TestYamlDocumentSource:
    def test_load_roots(self, write_scene):
        path = write_scene(
            "level.scene.yml",
            [{"name": "Root", "children": [{"name": "Child", "components": ["game.A"]}]}],
        )
        source = YamlDocumentSource([path])

        with source.open(str(path)) as roots:
            child = roots[0].children()[0]
            assert child.name == "Child"
            assert [c.type_name for c in child.components()] == ["game.A"]

    def test_bare_list_and_empty_documents(self, tmp_path):
        bare = tmp_path / "bare.scene.yml"
        bare.write_text("- name: Only\n")
        empty = tmp_path / "empty.scene.yml"
        empty.write_text("")
        source = YamlDocumentSource([bare, empty])

        with source.open(str(bare)) as roots:
            assert [r.name for r in roots] == ["Only"]
        with source.open(str(empty)) as roots:
            assert roots == []

    def test_unreadable_documents(self, tmp_path):
        invalid = tmp_path / "bad.scene.yml"
        invalid.write_text("roots: [unclosed\n")
        wrong_shape = tmp_path / "shape.scene.yml"
        wrong_shape.write_text("roots: 5\n")
        source = YamlDocumentSource([invalid, wrong_shape])

        for doc_id in (str(invalid), str(wrong_shape), str(tmp_path / "missing.scene.yml")):
            with pytest.raises(DocumentOpenError):
                with source.open(doc_id):
                    pass

    def test_discover(self, tmp_path, write_scene):
        write_scene("b.scene.yml", [])
        write_scene("a.scene.yaml", [])
        write_scene("old/c.scene.yml", [])
        (tmp_path / "scenes" / "notes.yml").write_text("{}")

        source = YamlDocumentSource.discover([tmp_path], ignore_patterns=["scenes/old/*"])

        names = [doc.rsplit("/", 1)[-1] for doc in source.list_documents()]
        assert names == ["a.scene.yaml", "b.scene.yml"]

    def test_write_yaml_document(self, tmp_path):
        path = tmp_path / "out" / "w.scene.yml"
        write_yaml_document(path, [SceneNode("Root", components=[ComponentRef("game.A")])])

        with YamlDocumentSource([path]).open(str(path)) as roots:
            assert roots[0].name == "Root"
            assert [c.type_name for c in roots[0].components()] == ["game.A"]
