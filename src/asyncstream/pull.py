"""Pull contract shared by streams and their stages.

A pull source is driven one step at a time:
    - advance: produce the next item, or report completion
    - terminate: request early completion
    - inject_error: resume the source with an exception instead of a value

Each call yields a ``PullResult``; ``done=True`` means the source is exhausted
and a well-behaved source keeps reporting that on every later pull.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

__all__ = ["PullResult", "PullSource", "TerminationSignal", "closing_on_abort"]


@dataclass(slots=True, frozen=True)
class PullResult(Generic[T]):
    """Outcome of a single pull.

    Attributes:
        done: True once the source is exhausted or terminated
        value: Pulled item; for a completed pull, the completion value (usually None)
    """
    done: bool
    value: T | None = None

    @classmethod
    def of(cls, value: T) -> PullResult[T]:
        """Result carrying an item."""
        return cls(False, value)

    @classmethod
    def complete(cls, value: Any = None) -> PullResult[Any]:
        """Result signalling completion."""
        return cls(True, value)


@runtime_checkable
class PullSource(Protocol[T_co]):
    """Capability implemented by every stream and stage."""

    async def advance(self, value: Any = None) -> PullResult[T_co]: ...
    async def terminate(self, value: Any = None) -> PullResult[T_co]: ...
    async def inject_error(self, error: BaseException) -> PullResult[T_co]: ...
    def __aiter__(self) -> PullSource[T_co]: ...


class TerminationSignal:
    """Marks a stage as explicitly terminated or thrown into.

    Shared between a stage's AsyncStream and the generator behind it: the
    stream sets ``requested`` before forwarding ``terminate`` or
    ``inject_error``, and the generator's ``closing_on_abort`` reads it.
    """

    __slots__ = ("requested",)

    def __init__(self) -> None:
        self.requested = False


class closing_on_abort:
    """Close ``source`` when the enclosed block is aborted.

    Wraps the part of a stage that iterates its upstream to the end. The
    upstream is closed when the block raises an ``Exception`` (a failed
    callback, an error thrown into the stage) or when ``signal`` shows the
    stage was explicitly terminated. A bare ``GeneratorExit`` or
    ``CancelledError`` leaves the upstream open, since an abandoned stage is
    finalized with ``GeneratorExit`` while other readers may still share its
    upstream. Normal exit does nothing.

    Example:
        >>> async with closing_on_abort(upstream, signal):
        ...     async for item in upstream:
        ...         yield item
    """

    __slots__ = ("_source", "_signal")

    def __init__(self, source: object, signal: TerminationSignal | None = None) -> None:
        self._source = source
        self._signal = signal

    async def __aenter__(self) -> object:
        return self._source

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None,
                        exc_tb: TracebackType | None) -> None:
        if exc_type is None:
            return
        requested = self._signal is not None and self._signal.requested
        if not (requested or isinstance(exc_val, Exception)):
            return
        if (close := getattr(self._source, "aclose", None)) is not None:
            await close()
