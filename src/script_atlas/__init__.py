# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Script Atlas: type metadata, dependency graphs and scene usage lookup."""

from .collector import ScriptModelCollector, discover_units
from .config import Config, ConfigurationError
from .dependency_graph import DependencyGraph
from .documents import (
    Component,
    ComponentRef,
    DocumentOpenError,
    DocumentSource,
    InMemoryDocumentSource,
    Node,
    SceneNode,
    YamlDocumentSource,
)
from .introspection import RuntimeClassAdapter, TypeIntrospectable, TypeIntrospector
from .logging_setup import setup_logging
from .models import (
    CacheEntry,
    MemberDescriptor,
    ScanWarning,
    SourceUnit,
    TypeIdentity,
    TypeMetadata,
    UsageRecord,
)
from .resolver import MappingResolver, ModuleFileResolver, TypeResolver
from .scanner import ContainerHierarchyScanner, ScanCancelled
from .service import ScriptAtlasService
from .usage_cache import UsageCache

__version__ = "0.1.0"

__all__ = [
    "CacheEntry",
    "Component",
    "ComponentRef",
    "Config",
    "ConfigurationError",
    "ContainerHierarchyScanner",
    "DependencyGraph",
    "DocumentOpenError",
    "DocumentSource",
    "InMemoryDocumentSource",
    "MappingResolver",
    "MemberDescriptor",
    "ModuleFileResolver",
    "Node",
    "RuntimeClassAdapter",
    "ScanCancelled",
    "ScanWarning",
    "SceneNode",
    "ScriptAtlasService",
    "ScriptModelCollector",
    "SourceUnit",
    "TypeIdentity",
    "TypeIntrospectable",
    "TypeIntrospector",
    "TypeMetadata",
    "TypeResolver",
    "UsageCache",
    "UsageRecord",
    "YamlDocumentSource",
    "discover_units",
    "setup_logging",
]
