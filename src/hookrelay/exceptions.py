"""hookrelay exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from RelayError for easy catching.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base exception for all hookrelay errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
    """

    code: str = "relay_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class ValidationError(RelayError):
    """Invalid ingestion or registration input.

    Rejected synchronously; the input never enters the delivery pipeline.

    Attributes:
        field: The field that failed validation.
        message: Description of the validation failure.
    """

    code: str = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "field": self.field,
                "message": self.message,
            }
        }


class NotFoundError(RelayError):
    """Resource not found.

    Raised at the API boundary when an event, subscription or delivery
    record doesn't exist.

    Attributes:
        resource_type: Type of resource (e.g., "event", "delivery").
        resource_id: ID of the missing resource.
    """

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "message": self.message,
            }
        }


class MissingReferenceError(NotFoundError):
    """A job references an event or subscription that no longer exists.

    Raised inside the delivery worker at dequeue time. The worker turns it
    into a non-retryable failure so the job is dropped instead of retried.
    """

    code: str = "missing_reference"


class DeliveryError(RelayError):
    """Transient delivery failure (timeout, connection error, non-2xx).

    Attributes:
        response_code: HTTP status code if a response was received.
    """

    code: str = "delivery_error"

    def __init__(self, message: str, response_code: int | None = None) -> None:
        self.response_code = response_code
        super().__init__(message)


class StorageError(RelayError):
    """Storage operation failed."""

    code: str = "storage_error"


class ConfigurationError(RelayError):
    """Required configuration is missing or invalid."""

    code: str = "configuration_error"


class AuthenticationError(RelayError):
    """Authentication token missing or invalid."""

    code: str = "authentication_error"
