"""Process-wide cache of per-type copy metadata.

For every concrete type the engine meets, the registry lazily resolves and
memoizes three facts, bundled per type into a :class:`TypeDescriptor`:

* an *allocator*: a zero-argument callable producing a blank instance;
* whether the type is *immutable*, meaning its instances may be shared by
  reference instead of duplicated;
* the ordered *fields* of an instance, walked across the whole MRO.

Entries are never invalidated. Lookups read the caches without locking and
discovery runs outside any lock, so two threads may classify the same type
at once; only the final write is serialized and the last write wins.
"""
# ruff: noqa: ANN401

from __future__ import annotations

import array
import dataclasses
import datetime
import decimal
import enum
import fractions
import inspect
import logging
import pathlib
import re
import threading
import types
import typing
import uuid
import weakref
from functools import lru_cache
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Final,
    Literal,
    cast,
    get_args,
    get_origin,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
else:  # pragma: no cover - provide runtime aliases for introspection tools
    import collections.abc as _abc

    Callable = _abc.Callable
    Iterator = _abc.Iterator

__all__ = [
    "PRIMITIVE_ARRAY_TYPES",
    "PRIMITIVE_TYPES",
    "REFERENCE_ARRAY_TYPES",
    "REGISTRY",
    "FieldDescriptor",
    "TypeDescriptor",
    "TypeRegistry",
    "is_named_tuple",
    "is_opaque",
]

_LOGGER = logging.getLogger(__name__)

_MISSING: Final = object()
# Py_TPFLAGS_IMMUTABLETYPE: set on every native type, never on Python classes.
_NATIVE_TYPE_FLAG: Final = 1 << 8
# Native classes whose whole state lives in the instance ``__dict__``.
_DICT_BACKED_NATIVE: Final[frozenset[type]] = frozenset({types.SimpleNamespace})
_CLASS_VAR_RE: Final = re.compile(r"^(typing\.)?ClassVar\b")
_FINAL_RE: Final = re.compile(r"^(typing\.)?Final\b")

PRIMITIVE_TYPES: Final[frozenset[type]] = frozenset(
    {type(None), bool, int, float, complex, str, bytes}
)
REFERENCE_ARRAY_TYPES: Final[frozenset[type]] = frozenset(
    {list, tuple, dict, set, frozenset}
)
PRIMITIVE_ARRAY_TYPES: Final[frozenset[type]] = frozenset({bytearray, array.array})

# Value types whose immutability cannot be derived from their layout.
_WELL_KNOWN_IMMUTABLE: Final[tuple[type, ...]] = (
    *PRIMITIVE_TYPES,
    decimal.Decimal,
    fractions.Fraction,
    range,
    slice,
    type,
    type(Ellipsis),
    type(NotImplemented),
    types.FunctionType,
    types.BuiltinFunctionType,
    property,
    weakref.ref,
    datetime.date,
    datetime.time,
    datetime.datetime,
    datetime.timedelta,
    datetime.timezone,
    uuid.UUID,
    pathlib.PurePath,
    pathlib.PurePosixPath,
    pathlib.PureWindowsPath,
    pathlib.Path,
    pathlib.PosixPath,
    pathlib.WindowsPath,
    re.Pattern,
    object,
)


@dataclasses.dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """An instance field of a class, as seen by the copy engine."""

    name: str
    owner: type
    declared_type: Any = None
    is_primitive: bool = False
    is_array: bool = False
    is_final: bool = False

    @property
    def is_private(self) -> bool:
        return self.name.startswith("_")


@dataclasses.dataclass(frozen=True, slots=True)
class TypeDescriptor:
    """Everything the engine knows about one concrete type."""

    cls: type
    allocator: Callable[[], object] | None
    immutable: bool
    fields: tuple[FieldDescriptor, ...]


def is_named_tuple(cls: type) -> bool:
    """Return ``True`` for classes built by ``namedtuple`` or ``NamedTuple``."""
    return issubclass(cls, tuple) and isinstance(getattr(cls, "_fields", None), tuple)


@lru_cache(maxsize=None)
def is_opaque(cls: type) -> bool:
    """Return ``True`` when part of ``cls`` state lives in native storage.

    Native types such as ``collections.deque``, and user classes deriving
    from them, keep their contents outside any attribute the engine
    can enumerate. Copying them field by field would silently drop data.
    """
    return any(
        klass.__flags__ & _NATIVE_TYPE_FLAG
        for klass in cls.__mro__
        if klass not in (object, typing.Generic) and klass not in _DICT_BACKED_NATIVE
    )


def _has_instance_dict(cls: type) -> bool:
    return cls.__dictoffset__ != 0


def _slot_names(klass: type) -> tuple[str, ...]:
    slots = vars(klass).get("__slots__", ())
    if isinstance(slots, str):
        return (slots,)
    return tuple(slots)


def _mangle(klass: type, name: str) -> str:
    if name.startswith("__") and not name.endswith("__"):
        return f"_{klass.__name__.lstrip('_')}{name}"
    return name


def _own_annotations(klass: type) -> dict[str, Any]:
    try:
        return dict(inspect.get_annotations(klass))
    except NameError:
        return {}


def _resolved_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except (NameError, TypeError, AttributeError, SyntaxError) as exc:
        _LOGGER.debug("Unresolvable annotations on %s: %s", cls.__qualname__, exc)
        return {}


def _unwrap_annotation(annotation: Any) -> tuple[Any, bool, bool]:
    """Split ``annotation`` into ``(declared_type, is_final, is_class_level)``."""
    if isinstance(annotation, str):
        text = annotation.strip()
        if _CLASS_VAR_RE.match(text):
            return None, False, True
        return None, bool(_FINAL_RE.match(text)), False
    if isinstance(annotation, dataclasses.InitVar) or annotation is dataclasses.InitVar:
        return None, False, True

    is_final = False
    declared = annotation
    while True:
        origin = get_origin(declared)
        if declared is ClassVar or origin is ClassVar:
            return None, False, True
        if declared is Final:
            return None, True, False
        if origin is Final:
            is_final = True
            declared = get_args(declared)[0]
            continue
        if origin is typing.Annotated:
            declared = get_args(declared)[0]
            continue
        return declared, is_final, False


def _describe_field(owner: type, name: str, annotation: Any) -> FieldDescriptor | None:
    declared, is_final, is_class_level = _unwrap_annotation(annotation)
    if is_class_level:
        return None
    container = get_origin(declared) or declared
    return FieldDescriptor(
        name=name,
        owner=owner,
        declared_type=declared,
        is_primitive=declared in PRIMITIVE_TYPES,
        is_array=container in REFERENCE_ARRAY_TYPES
        or container in PRIMITIVE_ARRAY_TYPES,
        is_final=is_final,
    )


def _iter_fields(cls: type) -> Iterator[FieldDescriptor]:
    hints = _resolved_hints(cls)
    seen: set[str] = set()

    if is_named_tuple(cls):
        for name in cls._fields:
            descriptor = _describe_field(cls, name, hints.get(name))
            if descriptor is not None:
                yield descriptor
        return

    for klass in cls.__mro__:
        if klass is object:
            continue
        raw = _own_annotations(klass)
        names = [*raw, *(_mangle(klass, name) for name in _slot_names(klass))]
        for name in names:
            if name in seen or name in ("__dict__", "__weakref__"):
                continue
            seen.add(name)
            descriptor = _describe_field(klass, name, hints.get(name, raw.get(name)))
            if descriptor is not None:
                yield descriptor


def _is_sealed_class(cls: type) -> bool:
    """Return ``True`` when instances reject ordinary attribute assignment."""
    if is_named_tuple(cls):
        return True
    params = getattr(cls, "__dataclass_params__", None)
    return dataclasses.is_dataclass(cls) and bool(getattr(params, "frozen", False))


def _resolve_allocator(cls: type) -> Callable[[], object] | None:
    if cls in _DICT_BACKED_NATIVE:
        return cls
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        return None
    for parameter in signature.parameters.values():
        if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
            continue
        if parameter.default is parameter.empty:
            return None
    return cls


class TypeRegistry:
    """Memoizing store of :class:`TypeDescriptor` facts keyed by type identity."""

    def __init__(self) -> None:
        self._allocators: dict[type, Callable[[], object] | None] = {}
        self._immutable: dict[type, bool] = {}
        self._fields: dict[type, tuple[FieldDescriptor, ...]] = {}
        self._descriptors: dict[type, TypeDescriptor] = {}
        self._allocators_lock = threading.Lock()
        self._immutable_lock = threading.Lock()
        self._fields_lock = threading.Lock()
        self._descriptors_lock = threading.Lock()
        self._seed()

    def _seed(self) -> None:
        with self._immutable_lock:
            for cls in _WELL_KNOWN_IMMUTABLE:
                self._immutable[cls] = True

    def clear(self) -> None:
        """Drop every cached entry and restore the well-known immutable seeds."""
        with self._allocators_lock:
            self._allocators.clear()
        with self._fields_lock:
            self._fields.clear()
        with self._descriptors_lock:
            self._descriptors.clear()
        with self._immutable_lock:
            self._immutable.clear()
        self._seed()

    def allocator(self, cls: type) -> Callable[[], object] | None:
        """Return a zero-argument allocator for ``cls`` or ``None``."""
        cached = self._allocators.get(cls, _MISSING)
        if cached is not _MISSING:
            return cast("Callable[[], object] | None", cached)
        allocator = _resolve_allocator(cls)
        if allocator is None:
            _LOGGER.debug("No zero-argument initializer for %s", cls.__qualname__)
        with self._allocators_lock:
            self._allocators[cls] = allocator
        return allocator

    def fields(self, cls: type) -> tuple[FieldDescriptor, ...]:
        """Return the declared instance fields of ``cls`` across its MRO."""
        cached = self._fields.get(cls)
        if cached is not None:
            return cached
        fields = tuple(_iter_fields(cls))
        with self._fields_lock:
            self._fields[cls] = fields
        return fields

    def is_immutable(self, cls: type) -> bool:
        """Return ``True`` when instances of ``cls`` can be shared, not copied.

        A type is immutable when every instance field is sealed (the class is
        a frozen dataclass or a named tuple, or the field is private and
        annotated ``Final``) and every declared field type is primitive or
        itself immutable. A type met again while its own classification is
        still running is treated as mutable.
        """
        cached = self._immutable.get(cls)
        if cached is not None:
            return cached
        return self._classify(cls, set())

    def describe(self, cls: type) -> TypeDescriptor:
        """Return the cached :class:`TypeDescriptor` of ``cls``."""
        cached = self._descriptors.get(cls)
        if cached is not None:
            return cached
        descriptor = TypeDescriptor(
            cls=cls,
            allocator=self.allocator(cls),
            immutable=self.is_immutable(cls),
            fields=self.fields(cls),
        )
        with self._descriptors_lock:
            self._descriptors[cls] = descriptor
        return descriptor

    def _classify(self, cls: type, in_progress: set[type]) -> bool:
        cached = self._immutable.get(cls)
        if cached is not None:
            return cached
        if cls in in_progress:
            _LOGGER.debug(
                "Cyclic field types reach %s; classifying as mutable", cls.__qualname__
            )
            return False
        in_progress.add(cls)
        try:
            result = self._check_structure(cls, in_progress)
        finally:
            in_progress.discard(cls)
        _LOGGER.debug(
            "Classified %s as %s", cls.__qualname__, "immutable" if result else "mutable"
        )
        with self._immutable_lock:
            self._immutable[cls] = result
        return result

    def _check_structure(self, cls: type, in_progress: set[type]) -> bool:
        if issubclass(cls, enum.Enum):
            return True
        if cls in REFERENCE_ARRAY_TYPES or cls in PRIMITIVE_ARRAY_TYPES:
            return False
        named_tuple = is_named_tuple(cls)
        if not named_tuple and is_opaque(cls):
            return False

        fields = self.fields(cls)
        sealed_class = _is_sealed_class(cls)
        if _has_instance_dict(cls) and not sealed_class:
            # Undeclared attributes can be added to any instance at runtime.
            return False
        if not fields:
            return True
        for field in fields:
            if not (sealed_class or (field.is_private and field.is_final)):
                return False
            if not field.is_primitive and not self._declared_immutable(
                field.declared_type, in_progress
            ):
                return False
        return True

    def _declared_immutable(self, declared: Any, in_progress: set[type]) -> bool:
        if declared is None or declared is Any or declared is object:
            return False
        if declared in PRIMITIVE_TYPES:
            return True
        origin = get_origin(declared)
        if origin is typing.Union or origin is types.UnionType:
            return all(
                self._declared_immutable(member, in_progress)
                for member in get_args(declared)
            )
        if origin is Literal:
            return True
        if origin is tuple or origin is frozenset:
            members = [arg for arg in get_args(declared) if arg is not Ellipsis]
            return bool(members) and all(
                self._declared_immutable(member, in_progress) for member in members
            )
        if origin is not None:
            return False
        if isinstance(declared, type):
            return self._classify(declared, in_progress)
        return False


REGISTRY: Final = TypeRegistry()
