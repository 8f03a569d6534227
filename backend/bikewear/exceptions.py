"""
Typed errors raised by the wear engine services.

The HTTP layer maps them to status codes in main.py; services never
return error tuples for these cases.
"""


class BikeWearError(Exception):
    """Base class for all engine errors."""

    error_code = "ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BikeWearError):
    """Referenced bike/component/slot does not exist or is not owned by the caller."""

    error_code = "NOT_FOUND"
    status_code = 404


class UnauthorizedError(NotFoundError):
    """Ownership check failed. Reported exactly like NotFoundError."""


class InvalidInputError(BikeWearError):
    """Missing/conflicting input, type mismatch, out-of-range value."""

    error_code = "BAD_USER_INPUT"
    status_code = 400


class ConflictError(BikeWearError):
    """A unique slot/type constraint was violated by a concurrent write."""

    error_code = "CONFLICT"
    status_code = 409
