"""Error taxonomy for store interactions.

Low-level failures from any store implementation are raised as one of the
``StoreError`` subclasses below. Views and mutations never show these
directly: :func:`classify` maps an exception to an :class:`ErrorKind` and
:func:`user_message` turns that into a short, actionable message.

Example:
    >>> try:
    ...     await store.insert("team_members", row)
    ... except StoreError as exc:
    ...     notifier.error(user_message(classify(exc), "join team"))
"""

from enum import StrEnum

# PostgreSQL / PostgREST error codes the client understands
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
INSUFFICIENT_PRIVILEGE = "42501"
JWT_EXPIRED = "PGRST301"
NO_ROWS = "PGRST116"


class StoreError(Exception):
    """Base class for remote store failures.

    Attributes:
        code: Backend error code when known (e.g. "23505")
    """

    def __init__(self, message: str = "", code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class TransientStoreError(StoreError):
    """Retryable network/HTTP layer failures.

    Raised for:
    - Network timeouts
    - Connection errors
    - HTTP 429 (rate limit)
    - HTTP 5xx (server errors)
    """


class ConstraintError(StoreError):
    """Uniqueness constraint violation (duplicate reaction, membership, completion)."""

    def __init__(self, message: str = "duplicate key", code: str | None = UNIQUE_VIOLATION) -> None:
        super().__init__(message, code)


class AuthorizationError(StoreError):
    """The identity used for the request is missing, expired or not permitted."""


class NotFoundError(StoreError):
    """The target row or its parent does not exist (or was deleted)."""


class ErrorKind(StrEnum):
    """Classification used to decide how a failure is presented."""

    TRANSIENT = "transient"
    CONSTRAINT = "constraint"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


def classify(exc: BaseException) -> ErrorKind:
    """Map an exception raised by a store call to an :class:`ErrorKind`."""
    if isinstance(exc, ConstraintError):
        return ErrorKind.CONSTRAINT
    if isinstance(exc, AuthorizationError):
        return ErrorKind.AUTHORIZATION
    if isinstance(exc, NotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, TransientStoreError):
        return ErrorKind.TRANSIENT
    if isinstance(exc, StoreError):
        code = exc.code or ""
        if code == UNIQUE_VIOLATION:
            return ErrorKind.CONSTRAINT
        if code in (INSUFFICIENT_PRIVILEGE, JWT_EXPIRED):
            return ErrorKind.AUTHORIZATION
        if code in (FOREIGN_KEY_VIOLATION, NO_ROWS):
            return ErrorKind.NOT_FOUND
    return ErrorKind.UNKNOWN


def user_message(kind: ErrorKind, action: str) -> str:
    """Short user-facing message for a failed ``action``.

    Example:
        >>> user_message(ErrorKind.TRANSIENT, "load comments")
        'Failed to load comments. Check your connection and try again.'
    """
    if kind is ErrorKind.CONSTRAINT:
        return "Already done"
    if kind is ErrorKind.AUTHORIZATION:
        return "Your session has expired. Please sign in again."
    if kind is ErrorKind.NOT_FOUND:
        return "This item is no longer available"
    if kind is ErrorKind.TIMEOUT:
        return f"Timed out trying to {action}. Please try again."
    if kind is ErrorKind.TRANSIENT:
        return f"Failed to {action}. Check your connection and try again."
    return f"Failed to {action}"


__all__ = [
    "StoreError",
    "TransientStoreError",
    "ConstraintError",
    "AuthorizationError",
    "NotFoundError",
    "ErrorKind",
    "classify",
    "user_message",
    "UNIQUE_VIOLATION",
    "FOREIGN_KEY_VIOLATION",
    "INSUFFICIENT_PRIVILEGE",
    "JWT_EXPIRED",
    "NO_ROWS",
]
