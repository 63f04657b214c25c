"""
Error taxonomy for sealdrop.

Every error carries a stable machine-readable code plus a human message.
The HTTP layer maps them to responses; nothing else crosses the boundary.
"""

from typing import Optional


class SealdropError(Exception):
    """Base class for all expected sealdrop failures."""

    code = "server_error"
    status_code = 500
    default_message = "Internal server error."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        """Structured API error body."""
        return {"error": self.message, "code": self.code}


class ValidationError(SealdropError):
    """Client input defect. Resubmitting corrected input fixes it."""

    status_code = 400
    REASONS = ("empty", "too_large", "invalid_format")

    def __init__(self, reason: str, message: str):
        if reason not in self.REASONS:
            raise ValueError(f"Unknown validation reason: {reason}")
        self.reason = reason
        self.code = reason
        super().__init__(message)


class DocumentNotFound(SealdropError):
    """The id is absent, expired or already purged."""

    code = "not_found"
    status_code = 404
    default_message = "Document not found."


class AuthFailure(SealdropError):
    """Wrong password or corrupted data. The two are never told apart."""

    code = "invalid_password"
    status_code = 401
    default_message = "Invalid password or data."

    def __init__(self):
        super().__init__(self.default_message)


class AllocationExhausted(SealdropError):
    """Every candidate document id collided with an existing record."""

    default_message = "Failed to generate a unique document ID. Please try again."


class DuplicateId(SealdropError):
    """The store already holds a record with this id."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__()


class ConfigurationError(SealdropError):
    """Invalid server or KDF configuration. Fatal, never retried."""

    code = "configuration_error"
