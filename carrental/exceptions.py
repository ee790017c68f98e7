"""
Error taxonomy for the car rental core.

Services raise these internally; every public core operation is wrapped by
``returns_result`` so callers receive a ``Result`` carrying either the value
or exactly one of these errors, never an uncaught fault.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CoreError(Exception):
    """Base class for all errors surfaced to callers of the core."""

    code = "ERROR"

    def __init__(self, message: str = "Error") -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:  # pragma: no cover
        return self.message


class ValidationError(CoreError):
    """Raised when input is missing or malformed. Carries field-level detail."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Error: invalid input", fields: Optional[dict[str, str]] = None) -> None:
        self.fields = dict(fields or {})
        super().__init__(message)


class ConflictError(CoreError):
    """Raised when a car is already held for an overlapping date range."""

    code = "CONFLICT"

    def __init__(self, message: str = "Error: car is already booked for the selected dates") -> None:
        super().__init__(message)


class IllegalTransitionError(CoreError):
    """Raised when a booking status change is not allowed by the state machine."""

    code = "ILLEGAL_TRANSITION"

    def __init__(self, message: str = "Error: illegal status transition") -> None:
        super().__init__(message)


class NotFoundError(CoreError):
    code = "NOT_FOUND"

    def __init__(self, message: str = "Error: not found") -> None:
        super().__init__(message)


class SessionNotFoundError(NotFoundError):
    code = "SESSION_NOT_FOUND"

    def __init__(self, message: str = "Error: session not found") -> None:
        super().__init__(message)


class BookingNotFoundError(NotFoundError):
    code = "BOOKING_NOT_FOUND"

    def __init__(self, message: str = "Error: booking not found") -> None:
        super().__init__(message)


class CarNotFoundError(NotFoundError):
    code = "CAR_NOT_FOUND"

    def __init__(self, message: str = "Error: car not found") -> None:
        super().__init__(message)


class AuthError(CoreError):
    """Authentication failures surfaced to the login flow."""

    code = "AUTH_ERROR"

    def __init__(self, message: str = "Error: authentication failed") -> None:
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    code = "INVALID_CREDENTIALS"

    def __init__(self, message: str = "Error: invalid credentials") -> None:
        super().__init__(message)


class InvalidRoleError(AuthError):
    code = "INVALID_ROLE"

    def __init__(self, message: str = "Error: invalid user role") -> None:
        super().__init__(message)


class NotAuthenticatedError(AuthError):
    code = "NOT_AUTHENTICATED"

    def __init__(self, message: str = "Error: authentication required") -> None:
        super().__init__(message)


class SessionExpiredError(AuthError):
    code = "SESSION_EXPIRED"

    def __init__(self, message: str = "Error: session expired") -> None:
        super().__init__(message)


class InternalError(CoreError):
    """Unexpected internal failure. The message shown to callers stays generic."""

    code = "SYSTEM_ERROR"

    def __init__(self, message: str = "Error: an unexpected error occurred") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a core operation: a value on success, one error otherwise."""

    value: Optional[T] = None
    error: Optional[CoreError] = None

    @classmethod
    def success(cls, value: T = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: CoreError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error is not None else None

    @property
    def message(self) -> str:
        return self.error.message if self.error is not None else "OK"

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def returns_result(fn: Callable[..., Any]) -> Callable[..., Result]:
    """
    Turn a raising service method into one returning ``Result``.
    CoreError -> failure with that error; anything else is logged and
    reported as a generic InternalError.
    """

    @functools.wraps(fn)
    def wrapper(*args, **kwargs) -> Result:
        try:
            return Result.success(fn(*args, **kwargs))
        except CoreError as e:
            return Result.failure(e)
        except Exception:
            logger.exception("unexpected_error", operation=fn.__qualname__)
            return Result.failure(InternalError())

    return wrapper
