# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Usage cache with modification-time based invalidation.

Stores, per type content id, the last computed usage list and the
modification time (st_mtime_ns) of the type's source unit. A cached list
is served only while the unit exists and its modification time equals the
stored one; anything else triggers a rescan that overwrites the entry.

Known limitation: only the source unit's modification time is tracked.
Editing a scanned document without touching the unit leaves the cached
usages in place until the unit changes or the entry is invalidated.

Persistence:
- load() at startup reads one JSON file holding two maps
  (content id -> usage records, content id -> modification time)
- flush() at shutdown writes the whole cache back
- A corrupt or unreadable file is treated as an empty cache; write
  failures are logged. Neither is fatal.

Thread Safety:
- _lock protects the two maps and the statistics
- Scans for the same content id are serialized through a per-id lock
  (single writer per type); different ids may scan in parallel
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from script_atlas.logging_setup import log_scan_warning
from script_atlas.models import CacheEntry, ScanWarning, TypeMetadata, UsageRecord, WarningKind
from script_atlas.scanner import ContainerHierarchyScanner

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1


class UsageCache:
    """Process-scoped cache of scene usages per type.

    Usage:
        cache = UsageCache(scanner, persist_path=cache_path)  # loads
        records = cache.get_or_scan(metadata)
        cache.flush()  # at shutdown
    """

    def __init__(
        self,
        scanner: ContainerHierarchyScanner,
        persist_path: Optional[Path] = None,
        load: bool = True,
    ) -> None:
        """Initialize the cache.

        Args:
            scanner: Scanner invoked on cache misses.
            persist_path: JSON file backing the cache. None keeps the cache
                in memory only.
            load: Whether to load persist_path right away.
        """
        self._scanner = scanner
        self._persist_path = persist_path
        self._lock = threading.Lock()
        self._id_locks: Dict[str, threading.Lock] = {}

        self._usages: Dict[str, List[UsageRecord]] = {}
        self._timestamps: Dict[str, int] = {}

        self._hits = 0
        self._misses = 0
        self._warnings: List[ScanWarning] = []

        if load and persist_path is not None:
            self.load()

    def __enter__(self) -> "UsageCache":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.flush()

    @property
    def warnings(self) -> List[ScanWarning]:
        with self._lock:
            return list(self._warnings)

    def get_or_scan(
        self,
        metadata: TypeMetadata,
        documents: Optional[Iterable[str]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[UsageRecord]:
        """Return the usages of a type, scanning only when the entry is stale.

        The returned list is also stored on metadata.usages.

        Args:
            metadata: Type to look up; content_id keys the entry and
                unit_path provides the modification time.
            documents: Documents to scan on a miss (default: every document
                of the scanner's source).
            cancel: Optional cancellation event forwarded to the scanner.

        Returns:
            Usage records (copies; mutating them does not touch the cache).
        """
        content_id = metadata.content_id
        with self._lock_for(content_id):
            # Captured before scanning: an edit during the scan leaves the entry stale
            current_mtime = self._unit_mtime(metadata.unit_path)
            result: List[UsageRecord] = []

            with self._lock:
                cached = self._usages.get(content_id)
                fresh = (
                    cached is not None
                    and current_mtime is not None
                    and self._timestamps.get(content_id) == current_mtime
                )
                if fresh and cached is not None:
                    self._hits += 1
                    result = [record.copy() for record in cached]
                else:
                    self._misses += 1

            if fresh:
                logger.debug(f"Usage cache hit: {metadata.full_name}")
                metadata.usages = result
                return [record.copy() for record in result]

            logger.debug(f"Usage cache miss: {metadata.full_name}, scanning")
            records = self._scanner.scan(metadata.identity, documents, cancel)

            if content_id and current_mtime is not None:
                with self._lock:
                    self._usages[content_id] = [record.copy() for record in records]
                    self._timestamps[content_id] = current_mtime

            metadata.usages = records
            return [record.copy() for record in records]

    def get_entry(self, content_id: str) -> Optional[CacheEntry]:
        """Stored entry for a content id, regardless of freshness."""
        with self._lock:
            usages = self._usages.get(content_id)
            mtime = self._timestamps.get(content_id)
            if usages is None or mtime is None:
                return None
            return CacheEntry(usages=[r.copy() for r in usages], unit_mtime=mtime)

    def invalidate(self, content_id: str) -> None:
        with self._lock:
            self._usages.pop(content_id, None)
            self._timestamps.pop(content_id, None)

    def clear(self) -> None:
        with self._lock:
            self._usages.clear()
            self._timestamps.clear()
            logger.debug("Usage cache cleared")

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "entries": len(self._usages),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total > 0 else 0.0,
            }

    def load(self) -> bool:
        """Replace the in-memory cache with the persisted one.

        Returns:
            True if a persisted cache was loaded. Missing, unreadable or
            corrupt files leave the cache empty and return False.
        """
        if self._persist_path is None:
            return False

        with self._lock:
            self._usages = {}
            self._timestamps = {}

        if not self._persist_path.exists():
            logger.debug(f"No persisted usage cache at {self._persist_path}")
            return False

        try:
            with open(self._persist_path, encoding="utf-8") as f:
                data = json.load(f)
            usages, timestamps = self._parse(data)
        except Exception as e:
            self._persistence_failure(f"Failed to load usage cache: {e}")
            return False

        with self._lock:
            self._usages = usages
            self._timestamps = timestamps
        logger.debug(f"Loaded {len(usages)} usage cache entries from {self._persist_path}")
        return True

    def flush(self) -> bool:
        """Write the whole cache to persist_path.

        Returns:
            True if the cache was written.
        """
        if self._persist_path is None:
            return False

        with self._lock:
            data = {
                "version": CACHE_FORMAT_VERSION,
                "usages": {
                    content_id: [record.to_dict() for record in records]
                    for content_id, records in self._usages.items()
                },
                "timestamps": dict(self._timestamps),
            }

        tmp_path = self._persist_path.with_name(self._persist_path.name + ".tmp")
        try:
            self._persist_path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self._persist_path)
        except OSError as e:
            self._persistence_failure(f"Failed to persist usage cache: {e}")
            return False

        logger.debug(f"Usage cache persisted to {self._persist_path}")
        return True

    def _lock_for(self, content_id: str) -> threading.Lock:
        with self._lock:
            lock = self._id_locks.get(content_id)
            if lock is None:
                lock = threading.Lock()
                self._id_locks[content_id] = lock
            return lock

    @staticmethod
    def _unit_mtime(unit_path: str) -> Optional[int]:
        try:
            return os.stat(unit_path).st_mtime_ns
        except OSError:
            return None

    @staticmethod
    def _parse(data: Any) -> Tuple[Dict[str, List[UsageRecord]], Dict[str, int]]:
        if not isinstance(data, dict):
            raise ValueError("cache root must be an object")
        if data.get("version") != CACHE_FORMAT_VERSION:
            raise ValueError(f"unsupported cache version {data.get('version')!r}")

        raw_usages = data.get("usages", {})
        raw_timestamps = data.get("timestamps", {})
        if not isinstance(raw_usages, dict) or not isinstance(raw_timestamps, dict):
            raise ValueError("usages and timestamps must be objects")

        usages: Dict[str, List[UsageRecord]] = {}
        for content_id, records in raw_usages.items():
            if not isinstance(records, list):
                raise ValueError(f"usages of {content_id} must be a list")
            usages[str(content_id)] = [UsageRecord.from_dict(record) for record in records]
        timestamps: Dict[str, int] = {}
        for content_id, value in raw_timestamps.items():
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"timestamp of {content_id} must be an integer")
            timestamps[str(content_id)] = value
        return usages, timestamps

    def _persistence_failure(self, message: str) -> None:
        warning = log_scan_warning(
            logger,
            ScanWarning(
                kind=WarningKind.CACHE_PERSISTENCE,
                source=str(self._persist_path),
                message=message,
            ),
        )
        with self._lock:
            self._warnings.append(warning)
