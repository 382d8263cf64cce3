"""
Shared error handling for the model query cache.
"""

from typing import Dict, Any, Optional


class ModelCacheException(Exception):
    """Base exception for the model query cache."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain error payload."""
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(ModelCacheException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class SchemaError(ModelCacheException):
    """Model metadata lookup errors."""

    def __init__(self, message: str = "Schema error", details: Optional[Dict[str, Any]] = None):
        super().__init__("SCHEMA_ERROR", message, details)


class FetchError(ModelCacheException):
    """Non-success response from the model API."""

    def __init__(
        self,
        status: int,
        info: Optional[Dict[str, Any]] = None,
        message: str = "An error occurred while fetching the data.",
    ):
        self.status = status
        self.info = info
        super().__init__("FETCH_ERROR", message, {"status": status, "info": info})


class ReadBackDeniedError(FetchError):
    """Mutation succeeded but policy does not allow reading the result back."""

    def __init__(self, status: int, info: Optional[Dict[str, Any]] = None):
        super().__init__(status, info, message="Mutation result is not readable under the current policy.")


class DeserializationError(ModelCacheException):
    """Response body could not be deserialized."""

    def __init__(self, message: str = "Unable to deserialize data", details: Optional[Dict[str, Any]] = None):
        super().__init__("DESERIALIZATION_ERROR", message, details)
