"""Decorator that hands a callable engine copies of its arguments."""

from __future__ import annotations

import inspect
from functools import wraps
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar, cast, overload

from .cloner import SHALLOW_DEPTH, UNBOUNDED_DEPTH, Cloner
from .identity import IdentityMap

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
else:  # pragma: no cover
    import collections.abc as _abc

    Awaitable = _abc.Awaitable
    Callable = _abc.Callable

__all__ = ["copy_arguments"]

_P = ParamSpec("_P")
_DecoratedFunc = TypeVar("_DecoratedFunc", bound=Callable[..., Any])


def _copy_call(
    cloner: Cloner,
    depth: int,
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> tuple[tuple[Any, ...], dict[str, Any]]:
    """Copy ``args`` and ``kwargs`` with one memo so aliasing between them survives."""
    memo = IdentityMap()
    frozen_args = cloner.copy(args, depth, memo)
    frozen_kwargs = cloner.copy(kwargs, depth, memo)
    return frozen_args, frozen_kwargs


@overload
def copy_arguments(fn: _DecoratedFunc) -> _DecoratedFunc: ...


@overload
def copy_arguments(
    *,
    shallow: bool = False,
    enabled: bool = True,
    cloner: Cloner | None = None,
) -> Callable[[_DecoratedFunc], _DecoratedFunc]: ...


def copy_arguments(
    fn: _DecoratedFunc | None = None,
    *,
    shallow: bool = False,
    enabled: bool = True,
    cloner: Cloner | None = None,
) -> Callable[[_DecoratedFunc], _DecoratedFunc] | _DecoratedFunc:
    """Invoke ``fn`` with copies of its arguments so callers never see mutations.

    Parameters
    ----------
    fn : Callable | None, optional
        The synchronous or asynchronous callable to wrap. When omitted, the
        decorator is returned for deferred application.
    shallow : bool, optional
        Copy arguments with the shallow depth budget instead of a deep copy.
    enabled : bool, optional
        If ``False`` skip decorating and return ``fn`` unchanged.
    cloner : Cloner | None, optional
        Engine used for the copies; defaults to one backed by the shared
        type registry.

    Returns:
    -------
    Callable
        Either the decorated function or a decorator awaiting a function,
        depending on whether ``fn`` was provided.
    """
    engine = cloner if cloner is not None else Cloner()
    depth = SHALLOW_DEPTH if shallow else UNBOUNDED_DEPTH

    def decorator(func: _DecoratedFunc) -> _DecoratedFunc:
        if not enabled:
            return func

        if inspect.iscoroutinefunction(func):
            async_fn = cast("Callable[_P, Awaitable[object]]", func)

            @wraps(func)
            async def async_wrapper(*args: _P.args, **kwargs: _P.kwargs) -> object:
                frozen_args, frozen_kwargs = _copy_call(engine, depth, args, kwargs)
                return await async_fn(*frozen_args, **frozen_kwargs)

            return cast("_DecoratedFunc", async_wrapper)

        @wraps(func)
        def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> object:
            frozen_args, frozen_kwargs = _copy_call(engine, depth, args, kwargs)
            return func(*frozen_args, **frozen_kwargs)

        return cast("_DecoratedFunc", wrapper)

    if fn is not None:
        return decorator(fn)
    return decorator
