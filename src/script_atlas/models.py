# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for script atlas.

This module defines the data structures shared by the collector, the
scanner and the usage cache:
- TypeIdentity: Stable key for a declared type
- MemberKind / Accessibility: Enum-like classes for member descriptors
- MemberDescriptor: A field, method or property of a type
- TypeMetadata: Structural model of one type plus its scene usages
- UsageRecord: Where a type is attached inside one document
- CacheEntry: Cached usages plus the unit modification time they belong to
- SourceUnit: One item of the source corpus
- ScanWarning: A recovered failure reported to the caller

All models use JSON-compatible primitives for serialization.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Set


class MemberKind:
    """Kinds of members a type can declare.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    FIELD = "field"
    METHOD = "method"
    PROPERTY = "property"


class Accessibility:
    """Member accessibility.

    Python has no access modifiers; a leading underscore marks a member
    as non-public.
    """

    PUBLIC = "public"
    NON_PUBLIC = "private"

    @staticmethod
    def of_name(name: str) -> str:
        """Accessibility implied by a member name."""
        return Accessibility.NON_PUBLIC if name.startswith("_") else Accessibility.PUBLIC


class WarningKind:
    """Kinds of recovered failures reported as ScanWarnings."""

    INTROSPECTION = "introspection"
    DOCUMENT_OPEN = "document_open"
    TRAVERSAL = "traversal"
    CACHE_PERSISTENCE = "cache_persistence"


@dataclass(frozen=True)
class TypeIdentity:
    """Stable, globally unique key for a type.

    Attributes:
        full_name: Fully-qualified name (module.QualName).
        unit: Owning unit identifier (source file path, or "<builtin>").
    """

    full_name: str
    unit: str

    @property
    def name(self) -> str:
        """Short (display) name: last component of the qualified name."""
        return self.full_name.rsplit(".", 1)[-1]

    def to_dict(self) -> Dict[str, Any]:
        return {"full_name": self.full_name, "unit": self.unit}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TypeIdentity":
        return cls(full_name=data["full_name"], unit=data["unit"])


@dataclass
class MemberDescriptor:
    """A field, method or property declared by a type.

    Design Constraint: Uses primitives only for easy serialization.
    """

    kind: str  # MemberKind value
    name: str
    type_name: str  # Declared type for fields/properties, return type for methods
    accessibility: str  # Accessibility value

    # Methods only
    parameter_types: List[str] = field(default_factory=list)
    parameter_names: List[str] = field(default_factory=list)

    # Properties only
    has_getter: bool = False
    has_setter: bool = False

    @property
    def is_public(self) -> bool:
        return self.accessibility == Accessibility.PUBLIC

    def signature(self) -> str:
        """Render the member the way the browser lists it.

        Examples:
            public int count
            public None move(Vector speed)
            public str label { get; set; }
        """
        head = f"{self.accessibility} {self.type_name} {self.name}"
        if self.kind == MemberKind.METHOD:
            params = ", ".join(
                f"{ptype} {pname}" for ptype, pname in zip(self.parameter_types, self.parameter_names)
            )
            return f"{head}({params})"
        if self.kind == MemberKind.PROPERTY:
            accessors = []
            if self.has_getter:
                accessors.append("get;")
            if self.has_setter:
                accessors.append("set;")
            return f"{head} {{ {' '.join(accessors)} }}"
        return head

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "kind": self.kind,
            "name": self.name,
            "type_name": self.type_name,
            "accessibility": self.accessibility,
        }
        if self.kind == MemberKind.METHOD:
            result["parameter_types"] = list(self.parameter_types)
            result["parameter_names"] = list(self.parameter_names)
        if self.kind == MemberKind.PROPERTY:
            result["has_getter"] = self.has_getter
            result["has_setter"] = self.has_setter
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemberDescriptor":
        """Deserialize from JSON-compatible dict."""
        return cls(
            kind=data["kind"],
            name=data["name"],
            type_name=data["type_name"],
            accessibility=data["accessibility"],
            parameter_types=list(data.get("parameter_types", [])),
            parameter_names=list(data.get("parameter_names", [])),
            has_getter=data.get("has_getter", False),
            has_setter=data.get("has_setter", False),
        )


@dataclass
class UsageRecord:
    """Evidence that a type is attached somewhere within one document.

    node_paths is an ordered set: traversal order, no duplicates.
    """

    document: str
    node_paths: List[str] = field(default_factory=list)

    def add_path(self, path: str) -> None:
        if path not in self.node_paths:
            self.node_paths.append(path)

    def copy(self) -> "UsageRecord":
        return UsageRecord(document=self.document, node_paths=list(self.node_paths))

    def to_dict(self) -> Dict[str, Any]:
        return {"document": self.document, "node_paths": list(self.node_paths)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageRecord":
        """Rebuild a record, rejecting anything but a string document and
        a list of string node paths.

        Raises:
            ValueError: If the payload does not have that shape.
        """
        if not isinstance(data, dict):
            raise ValueError(f"usage record must be an object, got {type(data).__name__}")
        document = data.get("document")
        if not isinstance(document, str):
            raise ValueError(f"usage record document must be a string, got {document!r}")
        node_paths = data.get("node_paths", [])
        if not isinstance(node_paths, list) or not all(isinstance(p, str) for p in node_paths):
            raise ValueError(f"node_paths of {document} must be a list of strings")
        return cls(document=document, node_paths=list(node_paths))


@dataclass
class TypeMetadata:
    """Structural metadata of one type, plus where it is used.

    Created once per collection run. The usages list is replaced in place
    whenever scene usage is (re)computed.
    """

    identity: TypeIdentity
    folder_path: str  # Parent directory of the unit, "/"-separated
    display_name: str  # Short type name
    script_name: str  # File name of the unit
    base_type_name: str  # "None" when the type has no base besides object
    unit_path: str
    content_id: str

    fields: List[MemberDescriptor] = field(default_factory=list)
    methods: List[MemberDescriptor] = field(default_factory=list)
    properties: List[MemberDescriptor] = field(default_factory=list)
    dependencies: Set[str] = field(default_factory=set)
    usages: List[UsageRecord] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        return self.identity.full_name

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict.

        Dependencies are emitted sorted so exports are stable.
        """
        return {
            "identity": self.identity.to_dict(),
            "folder_path": self.folder_path,
            "display_name": self.display_name,
            "script_name": self.script_name,
            "base_type_name": self.base_type_name,
            "unit_path": self.unit_path,
            "content_id": self.content_id,
            "fields": [m.to_dict() for m in self.fields],
            "methods": [m.to_dict() for m in self.methods],
            "properties": [m.to_dict() for m in self.properties],
            "dependencies": sorted(self.dependencies),
            "usages": [u.to_dict() for u in self.usages],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TypeMetadata":
        """Deserialize from JSON-compatible dict."""
        return cls(
            identity=TypeIdentity.from_dict(data["identity"]),
            folder_path=data["folder_path"],
            display_name=data["display_name"],
            script_name=data["script_name"],
            base_type_name=data["base_type_name"],
            unit_path=data["unit_path"],
            content_id=data["content_id"],
            fields=[MemberDescriptor.from_dict(m) for m in data.get("fields", [])],
            methods=[MemberDescriptor.from_dict(m) for m in data.get("methods", [])],
            properties=[MemberDescriptor.from_dict(m) for m in data.get("properties", [])],
            dependencies=set(data.get("dependencies", [])),
            usages=[UsageRecord.from_dict(u) for u in data.get("usages", [])],
        )


@dataclass
class CacheEntry:
    """Cached usage list for one type.

    Valid only while the unit's current modification time (nanoseconds,
    st_mtime_ns) equals unit_mtime. The documents that were scanned are
    not part of the key.
    """

    usages: List[UsageRecord]
    unit_mtime: int


@dataclass(frozen=True)
class SourceUnit:
    """One compilation unit of the source corpus."""

    path: str
    content_id: str


@dataclass
class ScanWarning:
    """A failure that was recovered locally and reported instead of raised."""

    kind: str  # WarningKind value
    source: str  # Unit path, document id, node path or cache path
    message: str
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "source": self.source,
            "message": self.message,
            "timestamp": self.timestamp,
        }

    def format_human_readable(self) -> str:
        return f"[{self.kind}] {self.source}: {self.message}"

