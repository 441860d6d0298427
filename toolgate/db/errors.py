"""Store errors.

Postgres and blob stores raise these instead of driver exceptions. The
gateway reports NotFoundError as NOT_FOUND, ConflictError and
ValidationError as VALIDATION_ERROR, and anything else as a failed tool
result.
"""

import asyncpg


class StoreError(Exception):
    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):
    """Backend unreachable or failing (PostgreSQL, Redis, blob storage)."""


class NotFoundError(StoreError):
    """A lookup by id found nothing. Empty searches are not errors."""


class ConflictError(StoreError):
    """Unique key already taken, e.g. a duplicate app slug or version."""


class ValidationError(StoreError):
    """The backend rejected the record's shape or values."""


def backend_error(action: str, error: Exception) -> StoreError:
    """Classify a driver exception raised while doing `action`."""
    message = f"{action}: {error}"
    if isinstance(error, StoreError):
        return error
    if isinstance(error, asyncpg.UniqueViolationError):
        return ConflictError(message, cause=error)
    if isinstance(
        error,
        (
            asyncpg.CheckViolationError,
            asyncpg.NotNullViolationError,
            asyncpg.ForeignKeyViolationError,
            asyncpg.DataError,
        ),
    ):
        return ValidationError(message, cause=error)
    return ConnectionError(message, cause=error)
