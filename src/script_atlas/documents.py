# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Hierarchical documents: scene trees of named nodes with components.

The scanner only sees the abstract Node / Component interfaces and opens
documents through a DocumentSource. Two sources are provided:
- InMemoryDocumentSource: document id -> list of root SceneNodes
- YamlDocumentSource: one YAML file per document

YAML document format:

    roots:
      - name: Root
        components:
          - type: game.player.Player
        children:
          - name: Child
            components: [game.camera.Camera]

Exclusive access: a DocumentSource holds one lock per document id for as
long as the document is open, so a document is traversed by at most one
scanner at a time. Opening is a context manager; the document is released
on every exit path.
"""

import fnmatch
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

import yaml

from script_atlas.introspection import full_type_name

logger = logging.getLogger(__name__)


class DocumentOpenError(Exception):
    """Raised when a document cannot be opened for scanning."""

    pass


class Component(ABC):
    """A runtime-attached object on a node."""

    @property
    @abstractmethod
    def type_name(self) -> str:
        """Exact runtime type full name of the component."""
        pass


class Node(ABC):
    """A node of a hierarchical document."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def children(self) -> Sequence["Node"]:
        """Child nodes in document-declared order."""
        pass

    @abstractmethod
    def components(self) -> Sequence[Component]:
        pass


class ComponentRef(Component):
    """Component known by its type full name."""

    def __init__(self, type_name: str) -> None:
        self._type_name = type_name

    @classmethod
    def of(cls, obj: Any) -> "ComponentRef":
        """Reference to a live object by its exact runtime type."""
        return cls(full_type_name(type(obj)))

    @property
    def type_name(self) -> str:
        return self._type_name

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ComponentRef) and other.type_name == self.type_name

    def __hash__(self) -> int:
        return hash(self._type_name)

    def __repr__(self) -> str:
        return f"ComponentRef({self._type_name!r})"


class SceneNode(Node):
    """In-memory node."""

    def __init__(
        self,
        name: str,
        components: Optional[Iterable[Component]] = None,
        children: Optional[Iterable["SceneNode"]] = None,
    ) -> None:
        self._name = name
        self._components: List[Component] = list(components or [])
        self._children: List[SceneNode] = list(children or [])

    @property
    def name(self) -> str:
        return self._name

    def children(self) -> Sequence["SceneNode"]:
        return self._children

    def components(self) -> Sequence[Component]:
        return self._components

    def add_child(self, child: "SceneNode") -> "SceneNode":
        self._children.append(child)
        return child

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the YAML document node format."""
        result: Dict[str, Any] = {"name": self._name}
        if self._components:
            result["components"] = [{"type": c.type_name} for c in self._components]
        if self._children:
            result["children"] = [child.to_dict() for child in self._children]
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SceneNode":
        """Deserialize from the YAML document node format.

        Raises:
            ValueError: If the node data is malformed.
        """
        node = YamlNode(data)
        return cls(
            name=node.name,
            components=list(node.components()),
            children=[cls.from_dict(child.data) for child in node.children()],
        )


class YamlNode(Node):
    """Node view over parsed YAML data.

    Validation is lazy: a malformed node raises ValueError when the broken
    part is accessed, so one bad node does not fail the whole document.
    """

    def __init__(self, data: Any) -> None:
        self.data = data

    def _mapping(self) -> Mapping[str, Any]:
        if not isinstance(self.data, Mapping):
            raise ValueError(f"Node must be a mapping, got {type(self.data).__name__}")
        return self.data

    @property
    def name(self) -> str:
        name = self._mapping().get("name")
        if not isinstance(name, str):
            raise ValueError(f"Node name must be a string, got {name!r}")
        return name

    def children(self) -> Sequence["YamlNode"]:
        raw = self._mapping().get("children") or []
        if not isinstance(raw, list):
            raise ValueError(f"Children of {self.name} must be a list")
        return [YamlNode(child) for child in raw]

    def components(self) -> Sequence[Component]:
        raw = self._mapping().get("components") or []
        if not isinstance(raw, list):
            raise ValueError(f"Components of {self.name} must be a list")
        components: List[Component] = []
        for entry in raw:
            if isinstance(entry, str):
                components.append(ComponentRef(entry))
            elif isinstance(entry, Mapping) and isinstance(entry.get("type"), str):
                components.append(ComponentRef(entry["type"]))
            else:
                raise ValueError(f"Invalid component entry on {self.name}: {entry!r}")
        return components


class DocumentSource(ABC):
    """Opens documents for exclusive traversal.

    Thread Safety:
        open() is safe to call from several threads. Each document id has
        its own lock, held while the document is open.
    """

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._document_locks: Dict[str, threading.Lock] = {}
        self._open_count = 0

    @property
    def open_count(self) -> int:
        """Number of open attempts so far."""
        with self._registry_lock:
            return self._open_count

    def _lock_for(self, document_id: str) -> threading.Lock:
        with self._registry_lock:
            self._open_count += 1
            lock = self._document_locks.get(document_id)
            if lock is None:
                lock = threading.Lock()
                self._document_locks[document_id] = lock
            return lock

    @contextmanager
    def open(self, document_id: str) -> Iterator[List[Node]]:
        """Open a document and yield its root nodes.

        The document is held exclusively until the context exits.

        Raises:
            DocumentOpenError: If the document cannot be opened.
        """
        lock = self._lock_for(document_id)
        with lock:
            roots = self._load(document_id)
            try:
                yield roots
            finally:
                self._release(document_id)

    @abstractmethod
    def list_documents(self) -> List[str]:
        """Identifiers of every document this source can open."""
        pass

    @abstractmethod
    def _load(self, document_id: str) -> List[Node]:
        pass

    def _release(self, document_id: str) -> None:
        logger.debug(f"Released document {document_id}")


class InMemoryDocumentSource(DocumentSource):
    """Documents held in memory as SceneNode forests."""

    def __init__(self, documents: Optional[Mapping[str, Sequence[SceneNode]]] = None) -> None:
        super().__init__()
        self._documents: Dict[str, List[SceneNode]] = {
            doc_id: list(roots) for doc_id, roots in (documents or {}).items()
        }

    def add_document(self, document_id: str, roots: Sequence[SceneNode]) -> None:
        self._documents[document_id] = list(roots)

    def list_documents(self) -> List[str]:
        return list(self._documents)

    def _load(self, document_id: str) -> List[Node]:
        if document_id not in self._documents:
            raise DocumentOpenError(f"Unknown document: {document_id}")
        return list(self._documents[document_id])


class YamlDocumentSource(DocumentSource):
    """Scene documents stored as YAML files; document ids are file paths."""

    def __init__(self, paths: Optional[Iterable[str]] = None) -> None:
        super().__init__()
        self._paths: List[str] = [str(p) for p in (paths or [])]

    @classmethod
    def discover(
        cls,
        folders: Iterable[Path],
        patterns: Sequence[str] = ("*.scene.yml", "*.scene.yaml"),
        ignore_patterns: Sequence[str] = (),
    ) -> "YamlDocumentSource":
        """Build a source over every document file under the folders."""
        found = set()
        for folder in folders:
            folder = Path(folder)
            if not folder.is_dir():
                logger.warning(f"Document folder not found: {folder}")
                continue
            for pattern in patterns:
                for path in folder.rglob(pattern):
                    relative = path.relative_to(folder).as_posix()
                    if any(fnmatch.fnmatch(relative, p) for p in ignore_patterns):
                        continue
                    if path.is_file():
                        found.add(path.as_posix())
        return cls(sorted(found))

    def list_documents(self) -> List[str]:
        return list(self._paths)

    def _load(self, document_id: str) -> List[Node]:
        try:
            with open(document_id, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise DocumentOpenError(f"Cannot read {document_id}: {e}") from e

        if isinstance(data, Mapping):
            roots = data.get("roots") or []
        elif data is None:
            roots = []
        else:
            roots = data
        if not isinstance(roots, list):
            raise DocumentOpenError(f"{document_id}: 'roots' must be a list")
        return [YamlNode(root) for root in roots]


def write_yaml_document(path: Path, roots: Sequence[SceneNode]) -> None:
    """Write a SceneNode forest as a YAML document."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump({"roots": [root.to_dict() for root in roots]}, f, sort_keys=False)
