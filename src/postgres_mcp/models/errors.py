"""Error codes and exceptions.

Every failure the server reports to a client carries an :class:`ErrorCode`.
Pool lifecycle violations are raised as :class:`PoolError`; database errors
from asyncpg are left as they are and only mapped to ``DATABASE_ERROR`` at the
tool boundary.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar


class ErrorCode(StrEnum):
    """Machine-readable error identifiers returned to clients."""

    INTERNAL_ERROR = "internal_error"
    DATABASE_ERROR = "database_error"

    POOL_NOT_INITIALIZED = "pool_not_initialized"
    POOL_SHUTTING_DOWN = "pool_shutting_down"
    POOL_ACQUIRE_TIMEOUT = "pool_acquire_timeout"
    POOL_INIT_FAILED = "pool_init_failed"
    POOL_CLOSED = "pool_closed"


@dataclass(frozen=True)
class ErrorDetail:
    """The ``error`` object of a failed tool response."""

    code: ErrorCode
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Plain-JSON form; ``details`` is omitted when empty."""
        payload: dict[str, Any] = {"code": str(self.code), "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class PostgresMcpError(Exception):
    """Base class for errors raised by this package.

    Subclasses set ``default_code``; callers may override it per instance.
    """

    default_code: ClassVar[ErrorCode] = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_error_detail(self) -> ErrorDetail:
        return ErrorDetail(code=self.code, message=self.message, details=dict(self.details))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code}, message={self.message!r})"


class PoolError(PostgresMcpError):
    """A connection pool lifecycle violation.

    ``code`` tells callers which condition occurred:

    - ``POOL_NOT_INITIALIZED``: the pool has not reached the ready state yet
    - ``POOL_SHUTTING_DOWN``: the pool is draining or closed
    - ``POOL_ACQUIRE_TIMEOUT``: no connection became available in time
    - ``POOL_INIT_FAILED``: the test connection or test query failed
    - ``POOL_CLOSED``: initialization was attempted on a retired pool
    """

    default_code = ErrorCode.POOL_NOT_INITIALIZED

    _RETRYABLE: ClassVar[frozenset[ErrorCode]] = frozenset(
        {
            ErrorCode.POOL_NOT_INITIALIZED,
            ErrorCode.POOL_ACQUIRE_TIMEOUT,
            ErrorCode.POOL_INIT_FAILED,
        }
    )

    @property
    def is_retryable(self) -> bool:
        """Whether retrying the same call later may succeed."""
        return self.code in self._RETRYABLE
