# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Service facade tying collection, scanning and the usage cache together.

The service owns the process-scoped pieces and their lifecycle:
- Startup: configuration is read, the usage cache is loaded from disk
- collect(): discovers units and builds the TypeMetadata of a run
- find_usages(): answers scene usage queries through the cache
- shutdown(): flushes the usage cache

The presentation layer keeps the returned metadata; the service keeps the
last run so the dependency graph can be exported.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Iterable, List, Optional

from script_atlas.collector import ScriptModelCollector, discover_units
from script_atlas.config import Config
from script_atlas.dependency_graph import DependencyGraph
from script_atlas.documents import DocumentSource, Node, YamlDocumentSource
from script_atlas.logging_setup import setup_logging
from script_atlas.models import ScanWarning, TypeMetadata, UsageRecord
from script_atlas.resolver import ModuleFileResolver, TypeResolver
from script_atlas.scanner import ContainerHierarchyScanner
from script_atlas.usage_cache import UsageCache

logger = logging.getLogger(__name__)


class ScriptAtlasService:
    """Business logic coordinator for script atlas.

    Owned Components:
    - TypeResolver: Loads units into classes (default: ModuleFileResolver)
    - ScriptModelCollector: Builds TypeMetadata
    - DocumentSource: Opens scene documents (default: YAML files under the
      project root)
    - ContainerHierarchyScanner: Finds where types are attached
    - UsageCache: Persisted usage results (disabled by configuration)

    Usage:
        with ScriptAtlasService(Config(), project_root=root) as service:
            types = service.collect()
            usages = service.find_usages(types[0])
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        project_root: Optional[str] = None,
        resolver: Optional[TypeResolver] = None,
        document_source: Optional[DocumentSource] = None,
        cache: Optional[UsageCache] = None,
        log_dir: Optional[Path] = None,
    ):
        """Initialize the service with its dependencies.

        Supports dependency injection for testing while providing sensible
        defaults for production use.

        Args:
            config: Configuration object (default: .script_atlas.yml in cwd)
            project_root: Root directory for units and documents (default: cwd)
            resolver: Type resolver (default: ModuleFileResolver on project_root)
            document_source: Document source (default: YAML documents
                discovered under project_root)
            cache: Usage cache (default: created from configuration)
            log_dir: When given, JSON logs of the process (recovered
                failures included) are written to this directory
        """
        self.log_file: Optional[Path] = None
        if log_dir is not None:
            self.log_file = setup_logging(Path(log_dir), console_output=False)

        self.config = config if config is not None else Config()
        self._project_root = Path(project_root) if project_root else Path.cwd()

        self._resolver = (
            resolver if resolver is not None else ModuleFileResolver(self._project_root)
        )
        self._collector = ScriptModelCollector(self._resolver)

        self._source = (
            document_source
            if document_source is not None
            else YamlDocumentSource.discover(
                [self._project_root],
                patterns=self.config.document_patterns,
                ignore_patterns=self.config.ignore_patterns,
            )
        )
        self._scanner = ContainerHierarchyScanner(
            self._source,
            max_workers=self.config.scan_workers,
            separator=self.config.node_path_separator,
        )

        self._cache: Optional[UsageCache]
        if cache is not None:
            self._cache = cache
        elif self.config.enable_usage_cache:
            self._cache = UsageCache(self._scanner, persist_path=self.config.cache_path)
        else:
            self._cache = None

        self._metadata: List[TypeMetadata] = []

    def __enter__(self) -> "ScriptAtlasService":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    @property
    def metadata(self) -> List[TypeMetadata]:
        """TypeMetadata of the last collection run."""
        return list(self._metadata)

    @property
    def scanner(self) -> ContainerHierarchyScanner:
        return self._scanner

    @property
    def cache(self) -> Optional[UsageCache]:
        return self._cache

    def collect(self, folders: Optional[Iterable[Path]] = None) -> List[TypeMetadata]:
        """Discover units under the folders and collect their metadata.

        Args:
            folders: Folders to analyze (default: project root).

        Returns:
            TypeMetadata of the run.
        """
        roots = list(folders) if folders is not None else [self._project_root]
        units = discover_units(
            roots,
            patterns=self.config.unit_patterns,
            ignore_patterns=self.config.ignore_patterns,
        )
        self._metadata = self._collector.collect(units)
        logger.info(f"Collected {len(self._metadata)} types from {len(units)} units")
        return list(self._metadata)

    def find_usages(
        self,
        metadata: TypeMetadata,
        documents: Optional[Iterable[str]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[UsageRecord]:
        """Where the type is attached in the documents.

        Goes through the usage cache when it is enabled. The result is also
        stored on metadata.usages.
        """
        if self._cache is not None:
            return self._cache.get_or_scan(metadata, documents, cancel)

        records = self._scanner.scan(metadata.identity, documents, cancel)
        metadata.usages = records
        return [record.copy() for record in records]

    def locate(self, document_id: str, node_path: str) -> Optional[Node]:
        """Node of a document at a root-relative path, if any."""
        return self._scanner.locate(document_id, node_path)

    def dependency_graph(self) -> DependencyGraph:
        """Dependency graph of the last collection run."""
        return DependencyGraph.build(self._metadata)

    def get_warnings(self) -> List[ScanWarning]:
        """Every recovered failure reported so far."""
        warnings = self._collector.warnings + self._scanner.warnings
        if self._cache is not None:
            warnings += self._cache.warnings
        return warnings

    def shutdown(self) -> None:
        """Flush the usage cache and release the run's metadata."""
        logger.info("ScriptAtlasService shutting down...")
        if self._cache is not None:
            self._cache.flush()
        self._metadata = []
        logger.info("ScriptAtlasService shutdown complete")
