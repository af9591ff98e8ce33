"""Async generator bodies behind the AsyncStream combinators.

Each function drives an upstream stream one pull at a time and is wrapped in a
new AsyncStream by the matching method. Arguments arrive already validated.

Upstream closing:
    Stages that iterate the upstream to its end do so inside
    ``closing_on_abort``, so terminating or throwing into a stage terminates the
    upstream as well. The stage's AsyncStream flags explicit termination on the
    ``signal`` it shares with the generator; a stage that is merely abandoned
    and garbage collected leaves the upstream open. ``take_stream`` and the
    discard phase of ``skip_stream`` pull directly and leave the upstream open;
    callers rely on being able to continue from where those stages stopped.
"""

from __future__ import annotations

import inspect
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from .errors import ShapeError
from .pull import TerminationSignal, closing_on_abort

if TYPE_CHECKING:
    from .stream import AsyncStream

T = TypeVar("T")
U = TypeVar("U")

MaybeAwaitable = U | Awaitable[U]

__all__ = [
    "pack_stream",
    "repack_stream",
    "flat_stream",
    "map_stream",
    "filter_stream",
    "skip_stream",
    "take_stream",
    "take_last_stream",
    "with_index",
    "resolve",
]


# ─────────────────────────────────────────────────────────────────────────────
# Callback helpers
# ─────────────────────────────────────────────────────────────────────────────


def _accepts_index(func: Callable[..., Any], leading: int) -> bool:
    if isinstance(func, type):  # constructors (int, str, models) take the item only
        return False
    try:
        params = inspect.signature(func).parameters.values()
    except (TypeError, ValueError):  # builtins without introspectable signature
        return False
    positional = 0
    for p in params:
        if p.kind is p.VAR_POSITIONAL:
            return True
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD):
            positional += 1
    return positional > leading


def with_index(func: Callable[..., U], leading: int = 1) -> Callable[..., U]:
    """Adapt ``func`` to be called as ``func(*leading_args, index)``.

    The index is dropped when ``func`` takes no positional parameter beyond
    its ``leading`` ones, so ``lambda x: x * 2`` and ``lambda x, i: x + i``
    both work as map transforms.

    Any further positional parameter counts, defaulted or not, and so does
    ``*args``: ``def f(x, scale=2)`` is called as ``f(item, index)``, and
    ``print``, on interpreters where it exposes a signature, prints the index
    after each item when used as a for_each action. Wrap such callables in a
    one-argument lambda to pass the item alone. Classes and builtins without
    an inspectable signature get the item only.
    """
    if _accepts_index(func, leading):
        return func
    return lambda *args: func(*args[:leading])


async def resolve(value: MaybeAwaitable[U]) -> U:
    """Await ``value`` if it is awaitable, else return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value  # type: ignore[return-value]


def _require_group(group: object, operation: str) -> Sequence[Any]:
    if isinstance(group, Sequence) and not isinstance(group, (str, bytes, bytearray)):
        return group
    raise ShapeError.create(
        operation,
        f"{operation} requires upstream to yield sequences",
        details=f"got {type(group).__name__}: {group!r}",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Grouping / Flattening
# ─────────────────────────────────────────────────────────────────────────────


async def pack_stream(
    upstream: AsyncStream[T],
    size: int,
    signal: TerminationSignal | None = None,
) -> AsyncIterator[list[T]]:
    """Group items into lists of ``size``; a shorter final list holds the leftovers."""
    buffer: list[T] = []
    async with closing_on_abort(upstream, signal):
        async for item in upstream:
            buffer.append(item)
            if len(buffer) == size:
                yield buffer
                buffer = []

    if buffer:
        yield buffer


async def repack_stream(
    upstream: AsyncStream[Sequence[T]],
    size: int,
    signal: TerminationSignal | None = None,
) -> AsyncIterator[list[T]]:
    """Re-slice incoming groups into lists of ``size``.

    Example:
        [[1, 2], [3, 4], [5]] with size 3 -> [1, 2, 3], [4, 5]
    """
    buffer: list[T] = []
    async with closing_on_abort(upstream, signal):
        async for group in upstream:
            buffer.extend(_require_group(group, "repack"))
            while len(buffer) >= size:
                yield buffer[:size]
                buffer = buffer[size:]

    if buffer:
        yield buffer


async def flat_stream(
    upstream: AsyncStream[Sequence[T]],
    signal: TerminationSignal | None = None,
) -> AsyncIterator[T]:
    """Yield every element of every group. One level only; nested groups stay nested."""
    async with closing_on_abort(upstream, signal):
        async for group in upstream:
            for item in _require_group(group, "flat"):
                yield item


# ─────────────────────────────────────────────────────────────────────────────
# Per-item
# ─────────────────────────────────────────────────────────────────────────────


async def map_stream(
    upstream: AsyncStream[T],
    transform: Callable[..., MaybeAwaitable[U]],
    signal: TerminationSignal | None = None,
) -> AsyncIterator[U]:
    """Yield ``transform(item, index)`` for each item, awaiting async results."""
    call = with_index(transform)
    index = 0
    async with closing_on_abort(upstream, signal):
        async for item in upstream:
            yield await resolve(call(item, index))
            index += 1


async def filter_stream(
    upstream: AsyncStream[T],
    predicate: Callable[..., MaybeAwaitable[object]],
    signal: TerminationSignal | None = None,
) -> AsyncIterator[T]:
    """Yield items whose predicate is truthy. Index counts rejected items too."""
    call = with_index(predicate)
    index = 0
    async with closing_on_abort(upstream, signal):
        async for item in upstream:
            if await resolve(call(item, index)):
                yield item
            index += 1


# ─────────────────────────────────────────────────────────────────────────────
# Positional
# ─────────────────────────────────────────────────────────────────────────────


async def skip_stream(
    upstream: AsyncStream[T],
    n: int,
    signal: TerminationSignal | None = None,
) -> AsyncIterator[T]:
    """Discard the first ``n`` items, then pass the rest through."""
    for _ in range(n):
        if (await upstream.advance()).done:
            return

    async with closing_on_abort(upstream, signal):
        async for item in upstream:
            yield item


async def take_stream(
    upstream: AsyncStream[T],
    n: int,
    signal: TerminationSignal | None = None,
) -> AsyncIterator[T]:
    """Yield at most ``n`` items; never pulls past the n-th.

    ``signal`` is accepted like every other stage but unused: take never
    closes its upstream.
    """
    for _ in range(n):
        result = await upstream.advance()
        if result.done:
            return
        yield result.value  # type: ignore[misc]


async def take_last_stream(
    upstream: AsyncStream[T],
    n: int,
    signal: TerminationSignal | None = None,
) -> AsyncIterator[T]:
    """Consume everything, then yield the final ``n`` items in order."""
    window: deque[T] = deque(maxlen=n)
    async with closing_on_abort(upstream, signal):
        async for item in upstream:
            window.append(item)

    for item in window:
        yield item
