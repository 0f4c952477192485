"""Public package surface for the object-cloner project."""

from .cloner import SHALLOW_DEPTH, Cloner, deep_copy, shallow_copy
from .copy_arguments import copy_arguments
from .errors import (
    CloneError,
    ConstructionInvocationError,
    FieldAccessError,
    InstantiationError,
)
from .type_registry import REGISTRY, FieldDescriptor, TypeDescriptor, TypeRegistry
from .version import __version__

__all__ = [
    "REGISTRY",
    "SHALLOW_DEPTH",
    "CloneError",
    "Cloner",
    "ConstructionInvocationError",
    "FieldAccessError",
    "FieldDescriptor",
    "InstantiationError",
    "TypeDescriptor",
    "TypeRegistry",
    "__version__",
    "copy_arguments",
    "deep_copy",
    "shallow_copy",
]
