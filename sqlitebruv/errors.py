from typing import Any


class BruvError(Exception):
    """Base exception for all sqlitebruv errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BruvError):
    """A condition, parameter or request was rejected before reaching the database."""


class RequestValidationError(ValidationError):
    """An HTTP request body could not be turned into a query."""


class StateError(BruvError):
    """A terminal operation was attempted on a builder with no table selected."""


class BackendError(BruvError):
    def __init__(self, message: str, status: int | None = None, details: Any = None):
        super().__init__(message)
        self.status = status
        self.details = details


class MigrationError(BruvError):
    pass
