# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for core data models."""

import json

import pytest

from script_atlas.models import (
    Accessibility,
    MemberDescriptor,
    MemberKind,
    ScanWarning,
    TypeIdentity,
    TypeMetadata,
    UsageRecord,
    WarningKind,
)


def _metadata() -> TypeMetadata:
    return TypeMetadata(
        identity=TypeIdentity("game.player.Player", "/proj/game/player.py"),
        folder_path="/proj/game",
        display_name="Player",
        script_name="player.py",
        base_type_name="Entity",
        unit_path="/proj/game/player.py",
        content_id="abc123",
        fields=[MemberDescriptor(MemberKind.FIELD, "health", "int", Accessibility.PUBLIC)],
        methods=[
            MemberDescriptor(
                MemberKind.METHOD,
                "move",
                "None",
                Accessibility.PUBLIC,
                parameter_types=["Vector"],
                parameter_names=["speed"],
            )
        ],
        properties=[
            MemberDescriptor(
                MemberKind.PROPERTY,
                "label",
                "str",
                Accessibility.PUBLIC,
                has_getter=True,
                has_setter=False,
            )
        ],
        dependencies={"Weapon", "Entity", "Vector"},
        usages=[UsageRecord("world1", ["Root/Child"])],
    )


class TestTypeIdentity:
    def test_short_name(self):
        assert TypeIdentity("game.player.Player", "u").name == "Player"
        assert TypeIdentity("Player", "u").name == "Player"

    def test_hashable_and_equal_by_value(self):
        a = TypeIdentity("m.A", "/a.py")
        assert a == TypeIdentity("m.A", "/a.py")
        assert a != TypeIdentity("m.A", "/other.py")
        assert len({a, TypeIdentity("m.A", "/a.py")}) == 1


class TestAccessibility:
    def test_underscore_is_non_public(self):
        assert Accessibility.of_name("_secret") == Accessibility.NON_PUBLIC
        assert Accessibility.of_name("__mangled") == Accessibility.NON_PUBLIC
        assert Accessibility.of_name("health") == Accessibility.PUBLIC


class TestMemberDescriptor:
    def test_field_signature(self):
        member = MemberDescriptor(MemberKind.FIELD, "count", "int", Accessibility.PUBLIC)
        assert member.signature() == "public int count"
        assert member.is_public

    def test_method_signature(self):
        member = MemberDescriptor(
            MemberKind.METHOD,
            "move",
            "None",
            Accessibility.NON_PUBLIC,
            parameter_types=["Vector", "float"],
            parameter_names=["speed", "dt"],
        )
        assert member.signature() == "private None move(Vector speed, float dt)"
        assert not member.is_public

    def test_method_without_parameters(self):
        member = MemberDescriptor(MemberKind.METHOD, "reset", "None", Accessibility.PUBLIC)
        assert member.signature() == "public None reset()"

    def test_property_signature(self):
        both = MemberDescriptor(
            MemberKind.PROPERTY, "label", "str", Accessibility.PUBLIC,
            has_getter=True, has_setter=True,
        )
        read_only = MemberDescriptor(
            MemberKind.PROPERTY, "power", "float", Accessibility.PUBLIC, has_getter=True
        )
        assert both.signature() == "public str label { get; set; }"
        assert read_only.signature() == "public float power { get; }"

    def test_to_dict_only_carries_kind_specific_keys(self):
        field_dict = MemberDescriptor(MemberKind.FIELD, "x", "float", "public").to_dict()
        assert "parameter_types" not in field_dict
        assert "has_getter" not in field_dict


class TestUsageRecord:
    def test_add_path_keeps_order_without_duplicates(self):
        record = UsageRecord("world1")
        record.add_path("Root/B")
        record.add_path("Root/A")
        record.add_path("Root/B")
        assert record.node_paths == ["Root/B", "Root/A"]

    def test_copy_is_independent(self):
        record = UsageRecord("world1", ["Root"])
        clone = record.copy()
        clone.add_path("Other")
        assert record.node_paths == ["Root"]

    def test_from_dict(self):
        record = UsageRecord.from_dict({"document": "world1", "node_paths": ["Root", "Root/Child"]})
        assert record == UsageRecord("world1", ["Root", "Root/Child"])
        assert UsageRecord.from_dict({"document": "world1"}).node_paths == []

    @pytest.mark.parametrize(
        "data",
        [
            "world1",
            {"node_paths": ["Root"]},
            {"document": 5, "node_paths": ["Root"]},
            {"document": "world1", "node_paths": "Root"},
            {"document": "world1", "node_paths": ["Root", None]},
        ],
    )
    def test_from_dict_rejects_malformed(self, data):
        with pytest.raises(ValueError):
            UsageRecord.from_dict(data)


class TestTypeMetadata:
    def test_full_name(self):
        assert _metadata().full_name == "game.player.Player"

    def test_round_trip_through_json(self):
        original = _metadata()
        restored = TypeMetadata.from_dict(json.loads(json.dumps(original.to_dict())))
        assert restored == original

    def test_dependencies_exported_sorted(self):
        assert _metadata().to_dict()["dependencies"] == ["Entity", "Vector", "Weapon"]


class TestScanWarning:
    def test_human_readable(self):
        warning = ScanWarning(WarningKind.DOCUMENT_OPEN, "world3", "Unknown document")
        assert warning.format_human_readable() == "[document_open] world3: Unknown document"
        assert warning.to_dict()["timestamp"].endswith("Z")
