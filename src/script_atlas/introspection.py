# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Type introspection: structural facts and dependencies of a type.

Flow: runtime class -> RuntimeClassAdapter (TypeIntrospectable) ->
TypeIntrospector -> TypeMetadata skeleton

The introspector never touches Python reflection directly. It works over
the TypeIntrospectable capability interface, which enumerates member names
and describes one member at a time. Describing a member is the unit of
failure: a member that cannot be read is skipped and reported, the rest of
the type is still produced.

Dependency rule: a type depends on B when B appears as a field type, a
method parameter type or the base type, and B belongs to the set of known
identities of the current run. Dependencies are recorded by display name.
"""

import inspect
import logging
import sys
import types
import typing
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from script_atlas.logging_setup import log_scan_warning
from script_atlas.models import (
    Accessibility,
    MemberDescriptor,
    MemberKind,
    ScanWarning,
    TypeIdentity,
    TypeMetadata,
    WarningKind,
)

logger = logging.getLogger(__name__)

# Prefixes of accessor implementations; represented by property descriptors
ACCESSOR_PREFIXES = ("get_", "set_")

BUILTIN_UNIT = "<builtin>"


def full_type_name(cls: type) -> str:
    """Exact runtime full name of a class (module.QualName)."""
    return f"{cls.__module__}.{cls.__qualname__}"


def identity_of(cls: type) -> TypeIdentity:
    """Build the TypeIdentity of a runtime class.

    The owning unit is the file of the class's module, or "<builtin>" for
    classes of modules without a file.
    """
    module = sys.modules.get(cls.__module__)
    unit = getattr(module, "__file__", None) or BUILTIN_UNIT
    return TypeIdentity(full_name=full_type_name(cls), unit=str(unit))


@dataclass(frozen=True)
class TypeRef:
    """A declared type: its display name and, for classes, its identity."""

    name: str
    identity: Optional[TypeIdentity] = None


@dataclass
class FieldInfo:
    name: str
    type_ref: TypeRef
    is_public: bool


@dataclass
class MethodInfo:
    name: str
    return_ref: TypeRef
    is_public: bool
    parameters: List[Tuple[str, TypeRef]] = field(default_factory=list)


@dataclass
class PropertyInfo:
    name: str
    type_ref: TypeRef
    is_public: bool
    has_getter: bool
    has_setter: bool


class TypeIntrospectable(ABC):
    """Capability interface over a type handle.

    Enumeration returns member names only; describe_* reads one member and
    may raise for malformed or partially-loaded members.
    """

    @property
    @abstractmethod
    def identity(self) -> TypeIdentity:
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        pass

    @abstractmethod
    def base(self) -> Optional[TypeRef]:
        """Primary base type, or None when the type only derives from the root type."""
        pass

    @abstractmethod
    def field_names(self) -> List[str]:
        pass

    @abstractmethod
    def describe_field(self, name: str) -> FieldInfo:
        pass

    @abstractmethod
    def method_names(self) -> List[str]:
        pass

    @abstractmethod
    def describe_method(self, name: str) -> MethodInfo:
        pass

    @abstractmethod
    def property_names(self) -> List[str]:
        pass

    @abstractmethod
    def describe_property(self, name: str) -> PropertyInfo:
        pass


def type_ref_for(annotation: Any) -> TypeRef:
    """Convert a (resolved) annotation into a TypeRef.

    - Missing annotations render as "Any"
    - None / NoneType render as "None"
    - Unresolved string annotations render as the string itself
    - Plain classes render as __name__ and carry their identity
    - Generic aliases and typing constructs render via repr without the
      "typing." prefix and carry no identity
    """
    if annotation is inspect.Parameter.empty or annotation is inspect.Signature.empty:
        return TypeRef("Any")
    if annotation is None or annotation is type(None):
        return TypeRef("None")
    if isinstance(annotation, str):
        return TypeRef(annotation)
    if isinstance(annotation, types.GenericAlias) or typing.get_origin(annotation) is not None:
        return TypeRef(repr(annotation).replace("typing.", ""))
    if inspect.isclass(annotation):
        return TypeRef(annotation.__name__, identity_of(annotation))
    return TypeRef(repr(annotation).replace("typing.", ""))


def _is_public(name: str) -> bool:
    return Accessibility.of_name(name) == Accessibility.PUBLIC


def _is_class_var(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(("ClassVar", "typing.ClassVar"))
    return annotation is typing.ClassVar or typing.get_origin(annotation) is typing.ClassVar


def _own_annotations(klass: type) -> Dict[str, Any]:
    """Annotations declared directly in a class body, unevaluated where lazy."""
    try:
        return dict(inspect.get_annotations(klass))
    except NameError:
        # Lazily evaluated annotations referring to undefined names
        import annotationlib

        return dict(annotationlib.get_annotations(klass, format=annotationlib.Format.FORWARDREF))


class RuntimeClassAdapter(TypeIntrospectable):
    """TypeIntrospectable over a live Python class.

    Members:
    - Fields: class-level annotations across the MRO (root object excluded,
      ClassVar annotations excluded), base classes first
    - Methods: plain functions declared in the class body itself; special
      methods other than __init__ are protocol hooks and are left out
    - Properties: property / cached_property objects across the MRO, the
      most derived definition wins; functions backing a property are not
      listed as methods

    String annotations (including those produced by
    ``from __future__ import annotations``) are resolved with
    typing.get_type_hints against the declaring module's globals, falling
    back to ``localns`` for names the module does not define. The collector
    passes every class of the run in localns so forward references between
    units resolve.
    """

    def __init__(self, cls: type, localns: Optional[Mapping[str, Any]] = None) -> None:
        if not inspect.isclass(cls):
            raise TypeError(f"Expected a class, got {type(cls)}")
        self._cls = cls
        self._localns: Dict[str, Any] = dict(localns or {})

    @property
    def cls(self) -> type:
        return self._cls

    @property
    def identity(self) -> TypeIdentity:
        return identity_of(self._cls)

    @property
    def display_name(self) -> str:
        return self._cls.__name__

    def base(self) -> Optional[TypeRef]:
        bases = [b for b in self._cls.__bases__ if b is not object]
        if not bases:
            return None
        return type_ref_for(bases[0])

    # -- fields -----------------------------------------------------------

    def _hierarchy(self) -> List[type]:
        return [k for k in reversed(self._cls.__mro__) if k is not object]

    def _field_owners(self) -> Dict[str, type]:
        owners: Dict[str, type] = {}
        for klass in self._hierarchy():
            for name, annotation in _own_annotations(klass).items():
                if _is_class_var(annotation):
                    owners.pop(name, None)
                    continue
                owners[name] = klass
        return owners

    def field_names(self) -> List[str]:
        return list(self._field_owners())

    def describe_field(self, name: str) -> FieldInfo:
        owner = self._field_owners()[name]
        annotation = self._evaluate(_own_annotations(owner)[name], owner.__module__)
        return FieldInfo(
            name=name,
            type_ref=type_ref_for(annotation),
            is_public=_is_public(name),
        )

    # -- methods ----------------------------------------------------------

    def _property_accessors(self) -> Set[Any]:
        accessors: Set[Any] = set()
        for prop in self._property_objects().values():
            if isinstance(prop, cached_property):
                accessors.add(prop.func)
            else:
                accessors.update(a for a in (prop.fget, prop.fset, prop.fdel) if a is not None)
        return accessors

    def method_names(self) -> List[str]:
        backing = self._property_accessors()
        names = []
        for name, value in vars(self._cls).items():
            if not inspect.isfunction(value) or value in backing:
                continue
            if name.startswith("__") and name.endswith("__") and name != "__init__":
                continue
            names.append(name)
        return names

    def describe_method(self, name: str) -> MethodInfo:
        func = vars(self._cls)[name]
        signature = inspect.signature(func)
        params = list(signature.parameters.values())[1:]  # drop self
        return MethodInfo(
            name=name,
            return_ref=type_ref_for(
                self._evaluate(signature.return_annotation, func.__module__)
            ),
            is_public=_is_public(name),
            parameters=[
                (p.name, type_ref_for(self._evaluate(p.annotation, func.__module__)))
                for p in params
            ],
        )

    # -- properties -------------------------------------------------------

    def _property_objects(self) -> Dict[str, Any]:
        found: Dict[str, Any] = {}
        for klass in self._cls.__mro__:
            if klass is object:
                continue
            for name, value in vars(klass).items():
                if name in found:
                    continue
                if isinstance(value, (property, cached_property)):
                    found[name] = value
        return found

    def property_names(self) -> List[str]:
        return list(self._property_objects())

    def describe_property(self, name: str) -> PropertyInfo:
        prop = self._property_objects()[name]
        if isinstance(prop, cached_property):
            getter: Optional[Callable[..., Any]] = prop.func
            setter: Optional[Callable[..., Any]] = None
        else:
            getter, setter = prop.fget, prop.fset

        annotation: Any = inspect.Signature.empty
        if getter is not None:
            annotation = self._evaluate(
                inspect.signature(getter).return_annotation, getter.__module__
            )
        # Callers reach the property through its own name, whatever the
        # accessor functions are called
        return PropertyInfo(
            name=name,
            type_ref=type_ref_for(annotation),
            is_public=_is_public(name),
            has_getter=getter is not None,
            has_setter=setter is not None,
        )

    # -- annotation evaluation -------------------------------------------

    def _evaluate(self, annotation: Any, module_name: Optional[str]) -> Any:
        """Resolve one string annotation with typing.get_type_hints.

        Names of the declaring module win over the run namespace. An
        annotation that does not resolve is returned unchanged.
        """
        forward_arg = getattr(annotation, "__forward_arg__", None)
        if isinstance(forward_arg, str):
            annotation = forward_arg
        if not isinstance(annotation, str):
            return annotation

        module = sys.modules.get(module_name or "")
        module_globals: Dict[str, Any] = dict(vars(module)) if module is not None else {}
        namespace: Dict[str, Any] = dict(self._localns)
        namespace.update(module_globals)

        carrier = types.SimpleNamespace(__annotations__={"value": annotation})
        try:
            return typing.get_type_hints(carrier, globalns=module_globals, localns=namespace)["value"]
        except Exception as e:
            logger.debug(f"Annotation {annotation!r} of {self._cls.__qualname__} left unresolved: {e}")
            return annotation


class TypeIntrospector:
    """Extracts a TypeMetadata skeleton (no usages, no unit facts).

    The collector fills folder path, script name and content id afterwards.

    Usage:
        introspector = TypeIntrospector()
        metadata = introspector.introspect(RuntimeClassAdapter(cls), known)
        problems = introspector.warnings
    """

    def __init__(self) -> None:
        self._warnings: List[ScanWarning] = []

    @property
    def warnings(self) -> List[ScanWarning]:
        return list(self._warnings)

    def clear_warnings(self) -> None:
        self._warnings.clear()

    def introspect(self, handle: Any, known: Set[TypeIdentity]) -> TypeMetadata:
        """Introspect one type against the known identities of the run.

        Args:
            handle: TypeIntrospectable, or a plain class (wrapped in a
                RuntimeClassAdapter).
            known: Identities of every type resolved in the current run.

        Returns:
            TypeMetadata with members, base type name and dependencies.
        """
        if not isinstance(handle, TypeIntrospectable):
            handle = RuntimeClassAdapter(handle)

        identity = handle.identity
        dependencies: Set[str] = set()

        def depend_on(ref: TypeRef) -> None:
            if ref.identity is not None and ref.identity in known:
                dependencies.add(ref.name)

        fields: List[MemberDescriptor] = []
        for name in self._enumerate(handle, "fields", handle.field_names):
            info = self._describe(handle, name, handle.describe_field)
            if info is None:
                continue
            fields.append(
                MemberDescriptor(
                    kind=MemberKind.FIELD,
                    name=info.name,
                    type_name=info.type_ref.name,
                    accessibility=self._accessibility(info.is_public),
                )
            )
            depend_on(info.type_ref)

        methods: List[MemberDescriptor] = []
        for name in self._enumerate(handle, "methods", handle.method_names):
            if name.startswith(ACCESSOR_PREFIXES):
                continue
            method = self._describe(handle, name, handle.describe_method)
            if method is None:
                continue
            methods.append(
                MemberDescriptor(
                    kind=MemberKind.METHOD,
                    name=method.name,
                    type_name=method.return_ref.name,
                    accessibility=self._accessibility(method.is_public),
                    parameter_types=[ref.name for _, ref in method.parameters],
                    parameter_names=[pname for pname, _ in method.parameters],
                )
            )
            for _, ref in method.parameters:
                depend_on(ref)

        properties: List[MemberDescriptor] = []
        for name in self._enumerate(handle, "properties", handle.property_names):
            prop = self._describe(handle, name, handle.describe_property)
            if prop is None:
                continue
            properties.append(
                MemberDescriptor(
                    kind=MemberKind.PROPERTY,
                    name=prop.name,
                    type_name=prop.type_ref.name,
                    accessibility=self._accessibility(prop.is_public),
                    has_getter=prop.has_getter,
                    has_setter=prop.has_setter,
                )
            )

        base_name = "None"
        try:
            base = handle.base()
        except Exception as e:
            self._record(identity, "<base>", e)
            base = None
        if base is not None:
            base_name = base.name
            depend_on(base)

        return TypeMetadata(
            identity=identity,
            folder_path="",
            display_name=handle.display_name,
            script_name="",
            base_type_name=base_name,
            unit_path=identity.unit,
            content_id="",
            fields=fields,
            methods=methods,
            properties=properties,
            dependencies=dependencies,
        )

    @staticmethod
    def _accessibility(is_public: bool) -> str:
        return Accessibility.PUBLIC if is_public else Accessibility.NON_PUBLIC

    def _enumerate(
        self, handle: TypeIntrospectable, what: str, enumerate_fn: Callable[[], List[str]]
    ) -> List[str]:
        try:
            return list(enumerate_fn())
        except Exception as e:
            self._record(handle.identity, f"<{what}>", e)
            return []

    def _describe(
        self, handle: TypeIntrospectable, name: str, describe_fn: Callable[[str], Any]
    ) -> Any:
        try:
            return describe_fn(name)
        except Exception as e:
            self._record(handle.identity, name, e)
            return None

    def _record(self, identity: TypeIdentity, member: str, error: Exception) -> None:
        warning = ScanWarning(
            kind=WarningKind.INTROSPECTION,
            source=identity.unit,
            message=f"Skipping member {identity.full_name}.{member}: {error}",
        )
        self._warnings.append(log_scan_warning(logger, warning))
