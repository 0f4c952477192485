"""Exceptions raised while copying object graphs."""

from __future__ import annotations

__all__ = [
    "CloneError",
    "ConstructionInvocationError",
    "FieldAccessError",
    "InstantiationError",
]


class CloneError(Exception):
    """Base class for failures that abort a copy operation."""


class InstantiationError(CloneError, TypeError):
    """The runtime type of an object offers no zero-argument initializer."""

    def __init__(self, cls: type) -> None:
        super().__init__(f"Cannot create new instance for {cls.__qualname__!r}")
        self.cls = cls


class FieldAccessError(CloneError, AttributeError):
    """A field could not be read from the source or written to the copy."""

    def __init__(self, cls: type, name: str, reason: str) -> None:
        super().__init__(f"Field {cls.__qualname__}.{name}: {reason}")
        self.cls = cls
        self.field_name = name


class ConstructionInvocationError(CloneError):
    """The zero-argument initializer raised while allocating a blank instance."""

    def __init__(self, cls: type, cause: BaseException) -> None:
        super().__init__(
            f"Initializer of {cls.__qualname__!r} failed: "
            f"{type(cause).__name__}: {cause}"
        )
        self.cls = cls
