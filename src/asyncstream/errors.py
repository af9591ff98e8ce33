"""Standardized error handling for stream stages.

Two failure families reach callers:
- Validation errors: bad combinator arguments, raised synchronously when the
  stage is built, before anything is pulled.
- Shape errors: an upstream item that does not fit a stage's structural
  expectation, raised mid-stream at the pull that observed it.

Failures raised by user callbacks are never wrapped here; they propagate as-is.
Uses Pydantic for the error payload and for argument validation.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, StrictInt, TypeAdapter, ValidationError


class ErrorCode(StrEnum):
    """Machine-readable classification of stream failures."""
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    INVALID_SHAPE = "INVALID_SHAPE"
    INVALID_SOURCE = "INVALID_SOURCE"


class StreamError(BaseModel):
    """Structured description of a stream failure.

    Attributes:
        operation: Stream operation that failed (e.g. ``pack``, ``flat``)
        message: Human-readable error message
        code: Machine-readable error code
        details: Optional extra information (offending value, validator output)
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "title": "Stream Error",
            "examples": [{
                "operation": "pack",
                "message": "size must be a positive integer",
                "code": "INVALID_ARGUMENT",
            }],
        },
    )

    operation: Annotated[str, Field(min_length=1, description="Stream operation that failed")]
    message: Annotated[str, Field(min_length=1, description="Human-readable error message")]
    code: ErrorCode = Field(default=ErrorCode.INVALID_ARGUMENT, description="Error classification")
    details: str | None = Field(default=None, description="Optional detailed error info")

    def render(self) -> str:
        """Format as a single line: ``operation: message (details)``."""
        return f"{self.operation}: {self.message}" + (f" ({self.details})" if self.details else "")

    __str__ = render


class StreamException(Exception):
    """Exception wrapping a StreamError for raising."""

    code: ErrorCode = ErrorCode.INVALID_ARGUMENT

    def __init__(self, error: StreamError) -> None:
        self.error = error
        super().__init__(error.message)

    @classmethod
    def create(cls, operation: str, message: str, *, details: str | None = None) -> Self:
        """Create exception with the class's default error code."""
        return cls(StreamError(operation=operation, message=message, code=cls.code, details=details))


class InvalidArgumentError(StreamException, ValueError):
    """Invalid combinator argument (non-positive size, negative count)."""

    code = ErrorCode.INVALID_ARGUMENT


class ShapeError(StreamException, TypeError):
    """Upstream produced an item a stage cannot handle structurally."""

    code = ErrorCode.INVALID_SHAPE


class SourceError(StreamException, TypeError):
    """Object handed to AsyncStream is not an async iterator or iterable."""

    code = ErrorCode.INVALID_SOURCE


# ─────────────────────────────────────────────────────────────────────────────
# Argument Validation
# ─────────────────────────────────────────────────────────────────────────────

PositiveCount = Annotated[StrictInt, Field(gt=0)]
NonNegativeCount = Annotated[StrictInt, Field(ge=0)]


@lru_cache(maxsize=None)
def _adapter(kind: str) -> TypeAdapter[int]:
    """Build (once) the TypeAdapter for a count kind."""
    return TypeAdapter(PositiveCount if kind == "positive" else NonNegativeCount)


def _validate(kind: str, operation: str, name: str, value: object) -> int:
    try:
        return _adapter(kind).validate_python(value)
    except ValidationError as e:
        qualifier = "positive" if kind == "positive" else "non-negative"
        raise InvalidArgumentError.create(
            operation,
            f"{name} must be a {qualifier} integer",
            details=f"got {value!r}: {e.errors()[0]['msg']}",
        ) from e


def validate_positive(operation: str, name: str, value: object) -> int:
    """Return ``value`` if it is an int > 0, else raise InvalidArgumentError."""
    return _validate("positive", operation, name, value)


def validate_non_negative(operation: str, name: str, value: object) -> int:
    """Return ``value`` if it is an int >= 0, else raise InvalidArgumentError."""
    return _validate("non_negative", operation, name, value)
