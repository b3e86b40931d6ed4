# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Script model collection: units -> types -> TypeMetadata.

Pipeline:
1. Resolve each unit to a class through the TypeResolver (units that
   declare no class are skipped)
2. De-duplicate by TypeIdentity
3. Introspect every surviving type against the full set of identities
4. Attach the unit facts (folder, script name, unit path, content id)

Duplicate tie-break: when several units resolve to the same identity, the
unit with the lexicographically smallest path wins. Input order does not
matter, so runs over the same corpus always pick the same unit.
"""

import fnmatch
import hashlib
import inspect
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from script_atlas.introspection import RuntimeClassAdapter, TypeIntrospector, identity_of
from script_atlas.models import ScanWarning, SourceUnit, TypeIdentity, TypeMetadata
from script_atlas.resolver import TypeResolver

logger = logging.getLogger(__name__)


def content_id_for(path: Path) -> str:
    """Stable content id for a unit.

    Derived from the resolved path, so it stays the same while the file is
    edited. Edits are detected through the modification time instead.
    """
    return hashlib.sha1(str(path.resolve()).encode("utf-8")).hexdigest()


def _is_ignored(relative: str, name: str, ignore_patterns: Sequence[str]) -> bool:
    return any(
        fnmatch.fnmatch(relative, pattern) or fnmatch.fnmatch(name, pattern)
        for pattern in ignore_patterns
    )


def discover_units(
    folders: Iterable[Path],
    patterns: Sequence[str] = ("*.py",),
    ignore_patterns: Sequence[str] = (),
) -> List[SourceUnit]:
    """Enumerate the source units under the given folders.

    Args:
        folders: Folders to walk recursively.
        patterns: Glob patterns of unit files.
        ignore_patterns: fnmatch patterns matched against the path relative
            to its folder and against the file name.

    Returns:
        SourceUnits sorted by path, without duplicates.
    """
    seen: Dict[str, SourceUnit] = {}
    for folder in folders:
        folder = Path(folder)
        if not folder.is_dir():
            logger.warning(f"Unit folder not found: {folder}")
            continue
        for pattern in patterns:
            for file_path in folder.rglob(pattern):
                if not file_path.is_file():
                    continue
                relative = file_path.relative_to(folder).as_posix()
                if _is_ignored(relative, file_path.name, ignore_patterns):
                    continue
                key = file_path.as_posix()
                if key not in seen:
                    seen[key] = SourceUnit(path=key, content_id=content_id_for(file_path))
    return [seen[key] for key in sorted(seen)]


class ScriptModelCollector:
    """Builds one TypeMetadata per distinct type of a corpus.

    Side effects: none beyond invoking the resolver; the input is not
    mutated.

    Usage:
        collector = ScriptModelCollector(ModuleFileResolver(root))
        metadata = collector.collect(discover_units([root]))
    """

    def __init__(
        self,
        resolver: TypeResolver,
        introspector: Optional[TypeIntrospector] = None,
    ) -> None:
        self._resolver = resolver
        self._introspector = introspector if introspector is not None else TypeIntrospector()

    @property
    def warnings(self) -> List[ScanWarning]:
        return self._introspector.warnings

    def collect(self, units: Iterable[SourceUnit]) -> List[TypeMetadata]:
        """Collect metadata for every type declared by the units.

        Returns:
            TypeMetadata list sorted by full name.
        """
        resolved = self._resolve_all(units)
        known = set(resolved)
        localns = {cls.__name__: cls for cls, _ in resolved.values()}

        results: List[TypeMetadata] = []
        for cls, unit in resolved.values():
            metadata = self._introspector.introspect(RuntimeClassAdapter(cls, localns), known)
            unit_path = Path(unit.path)
            metadata.folder_path = unit_path.parent.as_posix()
            metadata.script_name = unit_path.name
            metadata.unit_path = unit.path
            metadata.content_id = unit.content_id
            results.append(metadata)

        results.sort(key=lambda m: (m.full_name, m.unit_path))
        logger.info(f"Collected {len(results)} types")
        return results

    def _resolve_all(self, units: Iterable[SourceUnit]) -> Dict[TypeIdentity, Tuple[type, SourceUnit]]:
        resolved: Dict[TypeIdentity, Tuple[type, SourceUnit]] = {}
        for unit in units:
            try:
                cls = self._resolver.resolve(unit.path)
            except Exception as e:
                logger.warning(f"Resolver failed for {unit.path}: {e}")
                continue
            if cls is None:
                logger.debug(f"No type declared by {unit.path}")
                continue
            if not inspect.isclass(cls):
                logger.warning(f"Resolver returned a non-class for {unit.path}: {cls!r}")
                continue

            identity = identity_of(cls)
            current = resolved.get(identity)
            if current is not None:
                kept, dropped = sorted((current[1], unit), key=lambda u: u.path)
                logger.debug(
                    f"{identity.full_name} declared by both {kept.path} and {dropped.path}, "
                    f"keeping {kept.path}"
                )
                if kept is current[1]:
                    continue
            resolved[identity] = (cls, unit)
        return resolved
