"""Identity-keyed memo scoped to a single top-level copy operation."""

from __future__ import annotations

__all__ = ["IdentityMap"]


class IdentityMap:
    """Map source objects to their copies by ``id()``, never by equality.

    Each entry also holds a reference to its source so that no id can be
    recycled by the interpreter while the operation is running.
    """

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: dict[int, tuple[object, object]] = {}

    def __contains__(self, source: object) -> bool:
        return id(source) in self._entries

    def __getitem__(self, source: object) -> object:
        return self._entries[id(source)][1]

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, source: object, copy: object) -> None:
        """Record ``copy`` as the duplicate of ``source``."""
        self._entries[id(source)] = (source, copy)
