# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Container hierarchy scanner: where is a type attached in the scenes?

For each document: open it exclusively, walk every root depth-first in
pre-order (document-declared child order), and record the root-relative
path of each node carrying a component whose exact runtime type full name
equals the target's. Subtypes never match. A document contributes a
UsageRecord only when at least one node matched.

Error Recovery:
- Document cannot be opened: skipped, warning recorded
- Node components cannot be inspected: node contributes nothing, its
  children are still walked
- Node name or children cannot be read: that subtree is skipped
Nothing here aborts the scan of sibling subtrees or other documents.

Concurrency:
- max_workers=1 (default): documents scanned one after the other
- max_workers>1: documents scanned on a thread pool; each document is
  still held by a single worker through the source's per-document lock
- Results are keyed by document and returned in input document order,
  whatever order workers finish in
- An optional threading.Event cancels the scan; it is checked before
  each document is opened
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from script_atlas.documents import DocumentOpenError, DocumentSource, Node
from script_atlas.logging_setup import log_scan_warning
from script_atlas.models import ScanWarning, TypeIdentity, UsageRecord, WarningKind

logger = logging.getLogger(__name__)

DEFAULT_SEPARATOR = "/"


class ScanCancelled(Exception):
    """Raised when a scan is cancelled before all documents were scanned."""

    pass


class ContainerHierarchyScanner:
    """Finds the nodes of hierarchical documents a type is attached to.

    Usage:
        scanner = ContainerHierarchyScanner(YamlDocumentSource.discover([scenes]))
        records = scanner.scan(metadata.identity)
    """

    def __init__(
        self,
        source: DocumentSource,
        max_workers: int = 1,
        separator: str = DEFAULT_SEPARATOR,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive: {max_workers}")
        if not separator:
            raise ValueError("separator must not be empty")
        self._source = source
        self._max_workers = max_workers
        self._separator = separator
        self._warnings: List[ScanWarning] = []
        self._warnings_lock = threading.Lock()

    @property
    def source(self) -> DocumentSource:
        return self._source

    @property
    def warnings(self) -> List[ScanWarning]:
        with self._warnings_lock:
            return list(self._warnings)

    def clear_warnings(self) -> None:
        with self._warnings_lock:
            self._warnings.clear()

    def scan(
        self,
        identity: TypeIdentity,
        documents: Optional[Iterable[str]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[UsageRecord]:
        """Scan documents for nodes carrying the exact type.

        Args:
            identity: Type to look for (matched on full_name).
            documents: Document ids to scan. Defaults to every document of
                the source.
            cancel: Optional event; when set, the scan stops before opening
                the next document.

        Returns:
            One UsageRecord per document with at least one match, in input
            document order.

        Raises:
            ScanCancelled: If cancel was set before all documents were scanned.
        """
        doc_ids = self._unique(
            documents if documents is not None else self._source.list_documents()
        )
        target = identity.full_name

        results: Dict[str, Optional[UsageRecord]] = {}
        if self._max_workers == 1 or len(doc_ids) <= 1:
            for doc_id in doc_ids:
                results[doc_id] = self._scan_document(doc_id, target, cancel)
        else:
            workers = min(self._max_workers, len(doc_ids))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    doc_id: executor.submit(self._scan_document, doc_id, target, cancel)
                    for doc_id in doc_ids
                }
                for doc_id, future in futures.items():
                    results[doc_id] = future.result()

        records: List[UsageRecord] = [
            record for record in (results[doc_id] for doc_id in doc_ids) if record is not None
        ]
        logger.debug(
            f"Scanned {len(doc_ids)} documents for {target}: "
            f"{len(records)} with matches"
        )
        return records

    def locate(self, document_id: str, node_path: str) -> Optional[Node]:
        """Find the node with a root-relative path in a document.

        Returns:
            The first node in traversal order whose path equals node_path,
            or None if there is none or the document cannot be opened.
        """
        try:
            with self._source.open(document_id) as roots:
                for root in roots:
                    for node, path in self._walk(root, document_id):
                        if path == node_path:
                            return node
        except DocumentOpenError as e:
            self._warn(WarningKind.DOCUMENT_OPEN, document_id, str(e))
        return None

    @staticmethod
    def _unique(documents: Iterable[str]) -> List[str]:
        seen: Dict[str, None] = {}
        for doc_id in documents:
            seen.setdefault(str(doc_id), None)
        return list(seen)

    def _scan_document(
        self, document_id: str, target: str, cancel: Optional[threading.Event]
    ) -> Optional[UsageRecord]:
        if cancel is not None and cancel.is_set():
            raise ScanCancelled(f"Scan for {target} cancelled before {document_id}")

        record = UsageRecord(document=document_id)
        try:
            with self._source.open(document_id) as roots:
                try:
                    for root in roots:
                        for node, path in self._walk(root, document_id):
                            if self._has_exact_component(node, target, document_id, path):
                                record.add_path(path)
                except Exception as e:
                    # Paths found before the failure are still reported
                    self._warn(WarningKind.TRAVERSAL, document_id, f"Traversal aborted: {e}")
        except DocumentOpenError as e:
            self._warn(WarningKind.DOCUMENT_OPEN, document_id, str(e))
            return None
        except Exception as e:
            self._warn(WarningKind.DOCUMENT_OPEN, document_id, f"Unexpected error: {e}")
            return None

        if not record.node_paths:
            return None
        logger.debug(f"Found {len(record.node_paths)} nodes in {document_id} for {target}")
        return record

    def _walk(self, root: Node, document_id: str) -> Iterator[Tuple[Node, str]]:
        """Depth-first pre-order walk yielding (node, root-relative path)."""
        stack: List[Tuple[Node, Optional[str]]] = [(root, None)]
        while stack:
            node, parent_path = stack.pop()
            try:
                name = node.name
            except Exception as e:
                self._warn(WarningKind.TRAVERSAL, f"{document_id}:{parent_path or ''}", str(e))
                continue
            path = name if parent_path is None else f"{parent_path}{self._separator}{name}"

            yield node, path

            try:
                children = [child for child in node.children() if child is not None]
            except Exception as e:
                self._warn(WarningKind.TRAVERSAL, f"{document_id}:{path}", str(e))
                continue
            stack.extend((child, path) for child in reversed(children))

    def _has_exact_component(self, node: Node, target: str, document_id: str, path: str) -> bool:
        try:
            return any(
                component is not None and component.type_name == target
                for component in node.components()
            )
        except Exception as e:
            self._warn(WarningKind.TRAVERSAL, f"{document_id}:{path}", str(e))
            return False

    def _warn(self, kind: str, source: str, message: str) -> None:
        warning = log_scan_warning(logger, ScanWarning(kind=kind, source=source, message=message))
        with self._warnings_lock:
            self._warnings.append(warning)
