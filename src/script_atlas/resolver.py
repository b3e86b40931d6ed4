# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Type resolvers: map a source unit to the class it declares.

The collector only depends on the TypeResolver interface. Two adapters
are provided:
- ModuleFileResolver: loads the unit as a module with importlib and picks
  the class named after the file (the single class in the module as a
  fallback)
- MappingResolver: explicit path -> class mapping, for embedders that
  already hold the classes
"""

import hashlib
import importlib
import importlib.machinery
import importlib.util
import inspect
import logging
import sys
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from types import ModuleType
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


class TypeResolver(ABC):
    """Resolves a unit path to a runtime type handle."""

    @abstractmethod
    def resolve(self, path: str) -> Optional[type]:
        """Return the class declared by the unit, or None.

        Implementations must not raise for units that simply do not declare
        a class.
        """
        pass


class MappingResolver(TypeResolver):
    """Resolver backed by an explicit path -> class mapping."""

    def __init__(self, mapping: Optional[Mapping[str, Optional[type]]] = None) -> None:
        self._mapping: Dict[str, Optional[type]] = {}
        for path, cls in (mapping or {}).items():
            self.register(path, cls)

    def register(self, path: str, cls: Optional[type]) -> None:
        self._mapping[str(path)] = cls

    def resolve(self, path: str) -> Optional[type]:
        return self._mapping.get(str(path))


class ModuleFileResolver(TypeResolver):
    """Loads Python source files as modules and returns their class.

    Module names are the dotted path of the file relative to ``root`` (or
    the bare file stem when no root is given), so the full names of the
    resolved classes match what scene documents record for them.

    While a unit executes, ``root`` and the unit's own folder are on
    sys.path and the packages implied by its dotted name are registered,
    so units can import each other the way they would inside the project.

    Loaded modules are cached per resolved file path together with the
    file's modification time and re-executed once the file changes.
    Modules are registered in sys.modules, which type-hint evaluation needs.
    """

    def __init__(self, root: Optional[Path] = None) -> None:
        self._root = root.resolve() if root is not None else None
        self._modules: Dict[str, Tuple[int, Optional[ModuleType]]] = {}

    def resolve(self, path: str) -> Optional[type]:
        module = self._load_module(path)
        if module is None:
            return None
        return self._select_class(module, Path(path).stem)

    def _module_name_for(self, file_path: Path) -> str:
        if self._root is not None:
            try:
                relative = file_path.relative_to(self._root)
                return ".".join(relative.with_suffix("").parts)
            except ValueError:
                pass
        return file_path.stem

    def _load_module(self, path: str) -> Optional[ModuleType]:
        file_path = Path(path).resolve()
        key = str(file_path)
        try:
            mtime = file_path.stat().st_mtime_ns
        except OSError as e:
            logger.warning(f"Cannot stat unit {key}: {e}")
            self._modules.pop(key, None)
            return None

        cached = self._modules.get(key)
        if cached is not None and cached[0] == mtime:
            return cached[1]
        if cached is not None:
            logger.debug(f"Unit {key} changed since it was loaded, reloading")

        module_name = self._module_name_for(file_path)
        existing = sys.modules.get(module_name)
        if existing is not None and getattr(existing, "__file__", None) != key:
            # Name taken by another module (stdlib, other unit): disambiguate
            digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:8]
            logger.debug(f"Module name {module_name} already in use, loading {key} as "
                         f"{module_name}__{digest}")
            module_name = f"{module_name}__{digest}"

        spec = importlib.util.spec_from_file_location(module_name, key)
        if spec is None or spec.loader is None:
            logger.warning(f"Cannot build an import spec for {key}")
            self._modules[key] = (mtime, None)
            return None

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            with self._import_context(file_path):
                self._register_parents(module_name, file_path)
                spec.loader.exec_module(module)
        except Exception as e:
            logger.warning(f"Failed to load unit {key}: {e}")
            sys.modules.pop(module_name, None)
            self._modules[key] = (mtime, None)
            return None

        self._attach_to_parent(module_name, module)
        self._modules[key] = (mtime, module)
        return module

    @contextmanager
    def _import_context(self, file_path: Path) -> Iterator[None]:
        """Put the project root and the unit's folder on sys.path."""
        entries = []
        for folder in (self._root, file_path.parent):
            if folder is not None and str(folder) not in entries:
                entries.append(str(folder))
        added = [entry for entry in entries if entry not in sys.path]
        sys.path[:0] = added
        importlib.invalidate_caches()
        try:
            yield
        finally:
            for entry in added:
                if entry in sys.path:
                    sys.path.remove(entry)

    def _register_parents(self, module_name: str, file_path: Path) -> None:
        """Make the packages a dotted unit name implies importable."""
        parts = module_name.split(".")[:-1]
        folder = file_path.parent
        folders = []
        for _ in parts:
            folders.append(folder)
            folder = folder.parent
        folders.reverse()

        for index, directory in enumerate(folders):
            package_name = ".".join(parts[: index + 1])
            if package_name in sys.modules:
                continue
            try:
                importlib.import_module(package_name)
            except ImportError:
                spec = importlib.machinery.ModuleSpec(package_name, None, is_package=True)
                spec.submodule_search_locations = [str(directory)]
                sys.modules[package_name] = importlib.util.module_from_spec(spec)
                logger.debug(f"Registered namespace package {package_name} for {directory}")

    @staticmethod
    def _attach_to_parent(module_name: str, module: ModuleType) -> None:
        parent_name, _, child = module_name.rpartition(".")
        parent = sys.modules.get(parent_name) if parent_name else None
        if parent is not None:
            setattr(parent, child, module)

    @staticmethod
    def _select_class(module: ModuleType, stem: str) -> Optional[type]:
        declared: List[type] = [
            obj
            for obj in vars(module).values()
            if inspect.isclass(obj) and obj.__module__ == module.__name__
        ]
        for cls in declared:
            if cls.__name__ == stem:
                return cls
        if len(declared) == 1:
            return declared[0]
        return None
