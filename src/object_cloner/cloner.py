"""Reflective deep and shallow copies of arbitrary object graphs.

The engine never calls ``__copy__``, ``__deepcopy__`` or ``__reduce__``.
Instances are rebuilt by calling the zero-argument initializer of their
runtime type and then transplanting every instance field. Immutable values
are shared, and every distinct source object is copied at most once per
call, so shared references and cycles keep their shape in the result.

A depth budget bounds the traversal. It decreases by one along each
object-valued field and is left unchanged when stepping into the elements
of a list, tuple, dict, set or frozenset. Once it reaches zero, the field
receives ``None``.
"""
# ruff: noqa: ANN401

from __future__ import annotations

import array
import sys
from contextlib import suppress
from typing import Any, Final, TypeVar, cast

from .errors import ConstructionInvocationError, FieldAccessError, InstantiationError
from .identity import IdentityMap
from .type_registry import (
    PRIMITIVE_ARRAY_TYPES,
    PRIMITIVE_TYPES,
    REFERENCE_ARRAY_TYPES,
    REGISTRY,
    TypeDescriptor,
    TypeRegistry,
    is_named_tuple,
    is_opaque,
)

__all__ = ["SHALLOW_DEPTH", "UNBOUNDED_DEPTH", "Cloner", "deep_copy", "shallow_copy"]

SHALLOW_DEPTH: Final = 2
UNBOUNDED_DEPTH: Final = sys.maxsize

_T = TypeVar("_T")
_MISSING: Final = object()


class Cloner:
    """Copy object graphs using the metadata cached in a :class:`TypeRegistry`."""

    def __init__(self, registry: TypeRegistry = REGISTRY) -> None:
        self._registry = registry

    @property
    def registry(self) -> TypeRegistry:
        return self._registry

    def deep_copy(self, value: _T) -> _T:
        """Return an independent copy of ``value`` at unbounded depth."""
        return self.copy(value, UNBOUNDED_DEPTH)

    def shallow_copy(self, value: _T) -> _T:
        """Return a copy of ``value`` limited to ``SHALLOW_DEPTH`` field levels."""
        return self.copy(value, SHALLOW_DEPTH)

    def copy(
        self,
        value: _T,
        max_depth: int,
        identity_map: IdentityMap | None = None,
    ) -> _T:
        """Copy ``value`` following at most ``max_depth`` object-field levels.

        Parameters
        ----------
        value : object
            Root of the graph to copy. ``None`` is returned unchanged.
        max_depth : int
            Depth budget; must be at least ``1``.
        identity_map : IdentityMap, optional
            Memo to share between several roots that belong to one logical
            operation. A fresh map is used when omitted.

        Returns:
        -------
        object
            The copy, or ``value`` itself when its type is immutable.

        Raises:
        ------
        InstantiationError
            A reachable mutable object has no zero-argument initializer.
        ConstructionInvocationError
            A zero-argument initializer raised.
        FieldAccessError
            A field could not be transplanted into the copy.
        """
        if max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")
        if value is None:
            return value
        memo = IdentityMap() if identity_map is None else identity_map
        return cast(_T, self._copy(value, memo, max_depth))

    def _copy(self, obj: Any, memo: IdentityMap, depth: int) -> Any:
        if obj is None or depth == 0:
            return None
        cls = type(obj)
        descriptor = self._registry.describe(cls)
        if descriptor.immutable:
            return obj
        if obj in memo:
            return memo[obj]
        if cls in REFERENCE_ARRAY_TYPES or is_named_tuple(cls):
            return self._copy_reference_array(obj, memo, depth)
        if cls in PRIMITIVE_ARRAY_TYPES:
            return self._copy_primitive_array(obj, memo)
        if is_opaque(cls):
            raise FieldAccessError(
                cls, "<native>", "state is stored natively and cannot be enumerated"
            )

        clone = self._allocate(descriptor)
        memo.register(obj, clone)
        for name in self._field_names(obj, descriptor):
            self._copy_field(obj, clone, cls, name, memo, depth)
        _drop_attributes_missing_from(obj, clone)
        return clone

    def _allocate(self, descriptor: TypeDescriptor) -> object:
        if descriptor.allocator is None:
            raise InstantiationError(descriptor.cls)
        try:
            return descriptor.allocator()
        except Exception as exc:
            raise ConstructionInvocationError(descriptor.cls, exc) from exc

    def _field_names(self, obj: object, descriptor: TypeDescriptor) -> list[str]:
        names = [field.name for field in descriptor.fields]
        instance_dict = getattr(obj, "__dict__", None)
        if instance_dict:
            declared = set(names)
            names.extend(name for name in instance_dict if name not in declared)
        return names

    def _copy_field(
        self,
        source: object,
        clone: object,
        cls: type,
        name: str,
        memo: IdentityMap,
        depth: int,
    ) -> None:
        try:
            value = object.__getattribute__(source, name)
        except AttributeError:
            value = _MISSING

        if value is _MISSING:
            # Unset slot or declared-only annotation: keep it unset on the copy.
            with suppress(AttributeError):
                object.__delattr__(clone, name)
            return

        value_cls = type(value)
        if value_cls in PRIMITIVE_TYPES:
            copied = value
        elif (
            value_cls in REFERENCE_ARRAY_TYPES
            or value_cls in PRIMITIVE_ARRAY_TYPES
            or is_named_tuple(value_cls)
        ):
            copied = self._copy(value, memo, depth)
        else:
            copied = self._copy(value, memo, depth - 1)

        try:
            object.__setattr__(clone, name, copied)
        except (AttributeError, TypeError) as exc:
            raise FieldAccessError(cls, name, str(exc)) from exc

    def _copy_reference_array(self, values: Any, memo: IdentityMap, depth: int) -> Any:
        cls = type(values)
        if cls is list:
            copied_list: list[Any] = []
            memo.register(values, copied_list)
            copied_list.extend(self._copy(item, memo, depth) for item in values)
            return copied_list
        if cls is dict:
            copied_dict: dict[Any, Any] = {}
            memo.register(values, copied_dict)
            for key, item in values.items():
                copied_dict[self._copy(key, memo, depth)] = self._copy(
                    item, memo, depth
                )
            return copied_dict
        if cls is set:
            copied_set: set[Any] = set()
            memo.register(values, copied_set)
            copied_set.update(self._copy(item, memo, depth) for item in values)
            return copied_set

        # Tuples and frozensets can only be built once their members exist.
        items = [self._copy(item, memo, depth) for item in values]
        if values in memo:
            return memo[values]
        if all(new is old for new, old in zip(items, values, strict=True)):
            result = values
        elif is_named_tuple(cls):
            result = cls._make(items)
        else:
            result = cls(items)
        memo.register(values, result)
        return result

    def _copy_primitive_array(self, values: Any, memo: IdentityMap) -> Any:
        if type(values) is bytearray:
            result: Any = bytearray(values)
        else:
            result = array.array(values.typecode, values)
        memo.register(values, result)
        return result


def _drop_attributes_missing_from(source: object, clone: object) -> None:
    """Remove instance attributes the initializer set but ``source`` lacks."""
    clone_dict = getattr(clone, "__dict__", None)
    if not clone_dict:
        return
    source_dict = getattr(source, "__dict__", {})
    for name in [name for name in clone_dict if name not in source_dict]:
        del clone_dict[name]


_DEFAULT_CLONER: Final = Cloner()


def deep_copy(value: _T) -> _T:
    """Return an independent copy of ``value``.

    Every reachable object whose type is not immutable is duplicated, to any
    depth. ``None`` is returned unchanged.
    """
    return _DEFAULT_CLONER.deep_copy(value)


def shallow_copy(value: _T) -> _T:
    """Return a copy of ``value`` bounded to two object-field levels.

    The root and the objects referenced by its fields are duplicated; fields
    of those objects that refer to further objects are left as ``None``.
    Primitive values and array contents are not limited by the bound.
    """
    return _DEFAULT_CLONER.shallow_copy(value)
