"""asyncstream - lazy, chainable stages over async iterators.

Wrap any async iterator (an async generator, a paginated API client, a queue
reader) and compose grouping, flattening, mapping, filtering and positional
stages without materializing intermediate results. Terminal operations consume
the stream and return a single awaited value.

Quick Start:
    >>> from asyncstream import AsyncStream
    >>>
    >>> async def pages():
    ...     yield [1, 2]
    ...     yield [3, 4, 5]
    >>>
    >>> await AsyncStream(pages()).repack(3).collect()
    [[1, 2, 3], [4, 5]]
    >>> await AsyncStream.from_iterable(range(10)).skip(2).take(3).collect()
    [2, 3, 4]

Pull Contract:
    >>> stream = AsyncStream.from_iterable([1, 2])
    >>> await stream.advance()
    PullResult(done=False, value=1)
    >>> await stream.terminate()
    PullResult(done=True, value=None)

Logging:
    >>> from asyncstream import configure_logging
    >>> configure_logging(format="json", level="DEBUG")  # or ASYNCSTREAM_LOG_* env vars
"""

from __future__ import annotations

__version__ = "0.1.0"

# Core
from .stream import AsyncStream
from .pull import PullResult, PullSource, TerminationSignal, closing_on_abort

# Errors
from .errors import (
    ErrorCode,
    InvalidArgumentError,
    ShapeError,
    SourceError,
    StreamError,
    StreamException,
)

# Configuration
from .config import LoggingSettings, StreamSettings, clear_settings_cache, get_settings

# Observability
from .observability import configure_logging, get_logger, log_context

__all__ = [
    # Core
    "AsyncStream",
    "PullResult",
    "PullSource",
    "TerminationSignal",
    "closing_on_abort",
    # Errors
    "ErrorCode",
    "InvalidArgumentError",
    "ShapeError",
    "SourceError",
    "StreamError",
    "StreamException",
    # Configuration
    "LoggingSettings",
    "StreamSettings",
    "clear_settings_cache",
    "get_settings",
    # Observability
    "configure_logging",
    "get_logger",
    "log_context",
]
