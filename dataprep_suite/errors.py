"""
Service-layer exceptions.

Services raise these instead of HTTPException so they stay usable from the
CLI and tests; the API maps them to JSON error responses.
"""

from typing import Any, Dict, Optional


class DataPrepError(Exception):
    """Base class for domain errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(DataPrepError):
    """Raised when a referenced object does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, object_type: str, object_id: str):
        self.object_type = object_type
        self.object_id = object_id
        super().__init__(
            f"{object_type} '{object_id}' not found",
            {"object_type": object_type, "object_id": object_id},
        )


class ConflictError(DataPrepError):
    """Raised on uniqueness violations and invalid state transitions."""

    code = "CONFLICT"
    status_code = 409


class ValidationFailedError(DataPrepError):
    """Raised when input is well-formed but semantically invalid."""

    code = "VALIDATION_FAILED"
    status_code = 422


class ConnectorError(DataPrepError):
    """Raised when an external database or API call fails."""

    code = "CONNECTOR_ERROR"
    status_code = 502

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.operation = operation
        if operation:
            message = f"{operation} failed: {message}"
        super().__init__(message, details)


class StorageError(DataPrepError):
    """Raised when the blob store cannot satisfy a request."""

    code = "STORAGE_ERROR"
    status_code = 500
