"""Tests for driver error classification."""

import asyncpg

from toolgate.db.errors import (
    ConflictError,
    ConnectionError,
    NotFoundError,
    ValidationError,
    backend_error,
)


def test_unique_violation_is_conflict() -> None:
    cause = asyncpg.UniqueViolationError("duplicate key value")

    error = backend_error("Failed to create app", cause)

    assert isinstance(error, ConflictError)
    assert error.cause is cause
    assert str(error).startswith("Failed to create app: ")


def test_constraint_violation_is_validation() -> None:
    error = backend_error("Failed to save share", asyncpg.CheckViolationError("check"))
    assert isinstance(error, ValidationError)


def test_other_failures_are_connection_errors() -> None:
    error = backend_error("Failed to list grants", OSError("connection refused"))
    assert isinstance(error, ConnectionError)


def test_store_errors_pass_through() -> None:
    original = NotFoundError("App not found")
    assert backend_error("Failed to get app", original) is original
