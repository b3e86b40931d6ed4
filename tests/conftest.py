# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for script atlas tests."""

from pathlib import Path
from typing import Dict, List, Set

import pytest
import yaml
from sample_types import Boss, Entity, Player, Vector, Weapon

from script_atlas.documents import ComponentRef, InMemoryDocumentSource, SceneNode
from script_atlas.introspection import full_type_name, identity_of
from script_atlas.models import TypeIdentity


@pytest.fixture
def known_identities() -> Set[TypeIdentity]:
    """Identities of every sample type."""
    return {identity_of(cls) for cls in (Vector, Weapon, Entity, Player, Boss)}


@pytest.fixture
def world_source() -> InMemoryDocumentSource:
    """Two documents: world1 (Root/Child carries a Player) and world2."""
    player = ComponentRef(full_type_name(Player))
    boss = ComponentRef(full_type_name(Boss))
    world1 = [SceneNode("Root", children=[SceneNode("Child", components=[player])])]
    world2 = [
        SceneNode(
            "Arena",
            components=[boss],
            children=[
                SceneNode("Spawn", components=[player]),
                SceneNode("Props", children=[SceneNode("Hero", components=[player])]),
            ],
        ),
        SceneNode("Hero", components=[player]),
    ]
    return InMemoryDocumentSource({"world1": world1, "world2": world2})


@pytest.fixture
def unit_file(tmp_path: Path) -> Path:
    """Empty source file standing in for a unit on disk."""
    path = tmp_path / "units" / "Player.py"
    path.parent.mkdir(parents=True)
    path.write_text("# unit\n")
    return path


@pytest.fixture
def write_scene(tmp_path: Path):
    """Write a YAML scene document from plain node dicts and return its path."""

    def _write(name: str, roots: List[Dict]) -> Path:
        path = tmp_path / "scenes" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"roots": roots}, f, sort_keys=False)
        return path

    return _write
