"""Lazy, composable wrapper around a single-consumer async iterator.

AsyncStream implements the pull contract (advance / terminate / inject_error)
and the async generator protocol on top of it, so a stream can be used
anywhere an async generator is expected, including as the source of another
stream. Combinators return new streams that share the upstream cursor;
nothing runs until something pulls.

Key Operations:
    - Stages: pack, repack, flat, map, filter, skip, take, take_last
    - Terminals: reduce, for_each, collect, drain, first, last, count
    - Construction: AsyncStream(source), from_iterable, empty

Example:
    >>> async def naturals():
    ...     n = 1
    ...     while True:
    ...         yield n
    ...         n += 1
    >>>
    >>> await (
    ...     AsyncStream(naturals())
    ...     .filter(lambda n: n % 2 == 0)
    ...     .map(lambda n: n * n)
    ...     .pack(2)
    ...     .take(2)
    ...     .collect()
    ... )
    [[4, 16], [36, 64]]

Hazards:
    take_last and every terminal except first consume the whole source. On an
    unbounded source they never finish.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable, Sequence
from typing import Any, Generic, TypeVar

from .errors import SourceError, validate_non_negative, validate_positive
from .observability import get_logger
from .pull import PullResult, TerminationSignal, closing_on_abort
from .stages import (
    MaybeAwaitable,
    filter_stream,
    flat_stream,
    map_stream,
    pack_stream,
    repack_stream,
    resolve,
    skip_stream,
    take_last_stream,
    take_stream,
    with_index,
)

T = TypeVar("T")
U = TypeVar("U")

__all__ = ["AsyncStream"]

_log = get_logger("asyncstream.stream")


async def _iterate(values: Iterable[T]) -> AsyncIterator[T]:
    for value in values:
        yield value


class AsyncStream(Generic[T]):
    """Async iterator wrapper with chainable stages and awaitable terminals.

    The stream owns its source exclusively. Passing a stream to a stage does
    not copy it: the stage and the original stream advance the same cursor,
    so ``stream.take(3).collect()`` followed by ``stream.collect()`` returns
    the first three items and then the rest.
    """

    __slots__ = ("_source", "_signal")

    def __init__(self, source: AsyncIterator[T] | AsyncIterable[T], *,
                 signal: TerminationSignal | None = None) -> None:
        if not hasattr(source, "__anext__"):
            if not hasattr(source, "__aiter__"):
                raise SourceError.create(
                    "AsyncStream",
                    "source must be an async iterator or async iterable",
                    details=type(source).__name__,
                )
            source = aiter(source)
        self._source: AsyncIterator[T] = source  # type: ignore[assignment]
        self._signal = signal

    @classmethod
    def from_iterable(cls, values: Iterable[T]) -> AsyncStream[T]:
        """Stream over a synchronous iterable, read lazily."""
        return cls(_iterate(values))

    @classmethod
    def empty(cls) -> AsyncStream[Any]:
        """Stream with no items."""
        return cls(_iterate(()))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._source!r})"

    # ─────────────────────────────────────────────────────────────────────────
    # Pull contract
    # ─────────────────────────────────────────────────────────────────────────

    async def advance(self, value: Any = None) -> PullResult[T]:
        """Pull the next item, sending ``value`` into the source if it accepts sends."""
        try:
            if value is not None and hasattr(self._source, "asend"):
                item = await self._source.asend(value)  # type: ignore[attr-defined]
            else:
                item = await anext(self._source)
        except StopAsyncIteration:
            return PullResult.complete()
        return PullResult.of(item)

    async def terminate(self, value: Any = None) -> PullResult[T]:
        """Close the source early.

        Forwards to the source's ``aclose`` and reports completion carrying
        ``value``. A source without ``aclose`` cannot be closed; completion is
        reported anyway, without a value.
        """
        self._request_termination()
        if (close := getattr(self._source, "aclose", None)) is None:
            _log.debug("terminate not supported by source; reporting completion",
                       source=type(self._source).__name__)
            return PullResult.complete()
        await close()
        return PullResult.complete(value)

    async def inject_error(self, error: BaseException) -> PullResult[T]:
        """Throw ``error`` into the source at its suspension point.

        Returns whatever the source produces next if it handles the error.
        A source without ``athrow`` cannot receive it, so ``error`` is raised
        here instead.
        """
        self._request_termination()
        if (throw := getattr(self._source, "athrow", None)) is None:
            _log.debug("inject_error not supported by source; raising to caller",
                       source=type(self._source).__name__, error=type(error).__name__)
            raise error
        try:
            item = await throw(error)
        except StopAsyncIteration:
            return PullResult.complete()
        return PullResult.of(item)

    def _request_termination(self) -> None:
        # Stage generators close their upstream only when this was set.
        if self._signal is not None:
            self._signal.requested = True

    # ─────────────────────────────────────────────────────────────────────────
    # Async generator protocol
    # ─────────────────────────────────────────────────────────────────────────

    def __aiter__(self) -> AsyncStream[T]:
        return self

    async def __anext__(self) -> T:
        return self._unwrap(await self.advance())

    async def asend(self, value: Any) -> T:
        return self._unwrap(await self.advance(value))

    async def athrow(self, error: BaseException) -> T:
        return self._unwrap(await self.inject_error(error))

    async def aclose(self) -> None:
        await self.terminate()

    @staticmethod
    def _unwrap(result: PullResult[T]) -> T:
        if result.done:
            raise StopAsyncIteration
        return result.value  # type: ignore[return-value]

    # ─────────────────────────────────────────────────────────────────────────
    # Stages
    # ─────────────────────────────────────────────────────────────────────────

    def _stage(self, name: str, stage: Callable[..., AsyncIterator[U]], *stage_args: Any,
               **args: object) -> AsyncStream[U]:
        _log.bind(stage=name).debug("stage created", **args)
        signal = TerminationSignal()
        return AsyncStream(stage(self, *stage_args, signal=signal), signal=signal)

    def pack(self, size: int) -> AsyncStream[list[T]]:
        """Group items into lists of ``size``.

        Example:
            [1, 2, 3, 4, 5] with size 2 -> [1, 2], [3, 4], [5]

        Raises:
            InvalidArgumentError: ``size`` is not a positive integer
        """
        size = validate_positive("pack", "size", size)
        return self._stage("pack", pack_stream, size, size=size)

    def repack(self: AsyncStream[Sequence[U]], size: int) -> AsyncStream[list[U]]:
        """Regroup a stream of sequences into lists of ``size``.

        Example:
            [[1, 2], [3, 4], [5]] with size 3 -> [1, 2, 3], [4, 5]

        Raises:
            InvalidArgumentError: ``size`` is not a positive integer
            ShapeError: when pulled, if an upstream item is not a sequence
        """
        size = validate_positive("repack", "size", size)
        return self._stage("repack", repack_stream, size, size=size)

    def flat(self: AsyncStream[Sequence[U]]) -> AsyncStream[U]:
        """Flatten a stream of sequences by one level.

        Raises:
            ShapeError: when pulled, if an upstream item is not a sequence
        """
        return self._stage("flat", flat_stream)

    def map(self, transform: Callable[..., MaybeAwaitable[U]]) -> AsyncStream[U]:
        """Apply ``transform(item[, index])`` to every item; async transforms are awaited."""
        return self._stage("map", map_stream, transform, transform=_name(transform))

    def filter(self, predicate: Callable[..., MaybeAwaitable[object]]) -> AsyncStream[T]:
        """Keep items for which ``predicate(item[, index])`` is truthy.

        The index counts every upstream item, accepted or not.
        """
        return self._stage("filter", filter_stream, predicate, predicate=_name(predicate))

    def skip(self, n: int) -> AsyncStream[T]:
        """Drop the first ``n`` items.

        Raises:
            InvalidArgumentError: ``n`` is not a non-negative integer
        """
        n = validate_non_negative("skip", "n", n)
        return self._stage("skip", skip_stream, n, n=n)

    def take(self, n: int) -> AsyncStream[T]:
        """Yield at most the first ``n`` items, leaving the rest in this stream.

        ``take(0)`` returns this very stream, unwrapped and unconsumed.

        Raises:
            InvalidArgumentError: ``n`` is not a non-negative integer
        """
        n = validate_non_negative("take", "n", n)
        if n == 0:
            return self
        return self._stage("take", take_stream, n, n=n)

    def take_last(self, n: int) -> AsyncStream[T]:
        """Yield the last ``n`` items once the upstream is exhausted.

        **Important:** consumes the entire upstream and keeps up to ``n`` items in memory.

        Raises:
            InvalidArgumentError: ``n`` is not a positive integer
        """
        n = validate_positive("take_last", "n", n)
        return self._stage("take_last", take_last_stream, n, n=n)

    # ─────────────────────────────────────────────────────────────────────────
    # Terminals
    # ─────────────────────────────────────────────────────────────────────────

    async def reduce(self, reducer: Callable[..., MaybeAwaitable[U]], initial: U) -> U:
        """Fold items with ``reducer(accumulator, item[, index])`` starting from ``initial``."""
        call = with_index(reducer, leading=2)
        accumulator, index = initial, 0
        async with closing_on_abort(self):
            async for item in self:
                accumulator = await resolve(call(accumulator, item, index))
                index += 1
        _log.debug("stream consumed", operation="reduce", items=index)
        return accumulator

    async def for_each(self, action: Callable[..., MaybeAwaitable[object]]) -> None:
        """Run ``action(item[, index])`` for every item, one at a time."""
        call = with_index(action)
        index = 0
        async with closing_on_abort(self):
            async for item in self:
                await resolve(call(item, index))
                index += 1
        _log.debug("stream consumed", operation="for_each", items=index)

    async def collect(self) -> list[T]:
        """Gather all items into a list."""
        results: list[T] = []
        async with closing_on_abort(self):
            async for item in self:
                results.append(item)
        _log.debug("stream consumed", operation="collect", items=len(results))
        return results

    async def drain(self) -> None:
        """Consume every item without keeping any."""
        async with closing_on_abort(self):
            async for _ in self:
                pass

    async def first(self) -> T | None:
        """Pull exactly one item; None if the stream is exhausted. The rest stays unread."""
        return (await self.advance()).value

    async def last(self) -> T | None:
        """Return the final item, or None for an empty stream.

        **Important:** consumes the entire stream.
        """
        last_item: T | None = None
        async with closing_on_abort(self):
            async for item in self:
                last_item = item
        return last_item

    async def count(self) -> int:
        """Count the items.

        **Important:** consumes the entire stream.
        """
        count = 0
        async with closing_on_abort(self):
            async for _ in self:
                count += 1
        _log.debug("stream consumed", operation="count", items=count)
        return count


def _name(func: Callable[..., Any]) -> str:
    return getattr(func, "__qualname__", None) or repr(func)
