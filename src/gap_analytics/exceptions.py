"""
Custom exceptions for gap-analytics.

The analytics core degrades gracefully on thin data and does not raise;
these exceptions cover the edges around it: bad caller input, the local
cache, and missing configuration. Each exception carries:
- A descriptive message
- An error code
- Optional details for debugging

Errors raised by the Strava collaborator live in
``gap_analytics.integrations.base``.
"""

from typing import Any, Dict, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for consistent error payloads."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Activity data errors
    ACTIVITY_NOT_FOUND = "ACTIVITY_NOT_FOUND"
    ACTIVITY_MALFORMED = "ACTIVITY_MALFORMED"

    # Local cache errors
    CACHE_READ_ERROR = "CACHE_READ_ERROR"
    CACHE_WRITE_ERROR = "CACHE_WRITE_ERROR"

    # Configuration errors
    STRAVA_NOT_CONFIGURED = "STRAVA_NOT_CONFIGURED"


class GapAnalyticsError(Exception):
    """
    Base exception for all gap-analytics errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        details: Optional dictionary with additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a serializable error payload."""
        result: Dict[str, Any] = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# ============================================================================
# Validation Errors
# ============================================================================

class ValidationError(GapAnalyticsError):
    """Raised when caller input validation fails."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            details=error_details,
        )


class MalformedActivityError(ValidationError):
    """Raised when a provider payload cannot be parsed into an activity."""

    def __init__(
        self,
        message: str,
        activity_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if activity_id is not None:
            error_details["activity_id"] = activity_id
        super().__init__(message=message, details=error_details)
        self.code = ErrorCode.ACTIVITY_MALFORMED


# ============================================================================
# Not Found Errors
# ============================================================================

class DataNotFoundError(GapAnalyticsError):
    """Raised when a requested record is not present."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Any,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        error_details["resource_type"] = resource_type
        error_details["resource_id"] = resource_id
        super().__init__(
            message=f"{resource_type} not found: {resource_id}",
            code=ErrorCode.NOT_FOUND,
            details=error_details,
        )


class ActivityNotInStoreError(DataNotFoundError):
    """Raised when an activity id is not part of the local collection."""

    def __init__(self, activity_id: Any) -> None:
        super().__init__("Activity", activity_id)
        self.code = ErrorCode.ACTIVITY_NOT_FOUND


# ============================================================================
# Cache Errors
# ============================================================================

class CacheError(GapAnalyticsError):
    """Raised when the local activity cache cannot be read or written."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        write: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if path:
            error_details["path"] = path
        super().__init__(
            message=message,
            code=ErrorCode.CACHE_WRITE_ERROR if write else ErrorCode.CACHE_READ_ERROR,
            details=error_details,
        )


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(GapAnalyticsError):
    """Raised when Strava credentials or client settings are missing."""

    def __init__(
        self,
        message: str = "Strava client is not configured",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.STRAVA_NOT_CONFIGURED,
            details=details,
        )
