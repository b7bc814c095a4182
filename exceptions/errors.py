"""
Custom exception classes for the analytics engine.

Every failure the engine can report is an AppError with a stable code,
so callers can map it to their own response format.
"""

from typing import Optional, Any
from datetime import date, datetime, timezone


class AppError(Exception):
    """
    Base exception for all engine errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "INVALID_RANGE")
        message: Human-readable message
        status_code: HTTP status code suggested to the calling layer
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


# ===================
# RANGE / DATA ERRORS
# ===================

class InvalidRangeError(ValidationError):
    """Date range is inverted, or a filter selects no entities at all."""

    def __init__(
        self,
        message: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        details: Optional[dict] = None
    ):
        context = dict(details or {})
        if start_date is not None:
            context["start_date"] = start_date.isoformat()
        if end_date is not None:
            context["end_date"] = end_date.isoformat()
        super().__init__(
            code="INVALID_RANGE",
            message=message,
            details=context
        )


class InsufficientDataError(ValidationError):
    """A series cannot be constructed at all (sparse data is not an error)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="INSUFFICIENT_DATA",
            message=message,
            details=details
        )


class GranularityRequiredError(ValidationError):
    """Trend or forecast requested without a granularity."""

    def __init__(self, analysis: str):
        super().__init__(
            code="GRANULARITY_REQUIRED",
            message=f"Granularity is required for {analysis}",
            details={"analysis": analysis, "valid": ["daily", "weekly", "monthly"]}
        )


class BatchLimitExceededError(ValidationError):
    """Too many entity IDs in a single request."""

    def __init__(self, field: str, provided: int, limit: int):
        super().__init__(
            code="BATCH_LIMIT_EXCEEDED",
            message=f"{field} accepts at most {limit} IDs",
            details={"field": field, "provided": provided, "limit": limit}
        )


# ===================
# COSTING ERRORS
# ===================

class UnitConversionError(ValidationError):
    """Recipe line unit cannot be converted to the ingredient's pack unit."""

    def __init__(self, from_unit: str, to_unit: str, ingredient_id: Optional[str] = None):
        super().__init__(
            code="UNIT_CONVERSION_FAILED",
            message=f"Cannot convert {from_unit} to {to_unit}",
            details={
                "from_unit": from_unit,
                "to_unit": to_unit,
                "ingredient_id": ingredient_id,
            }
        )


class UnsupportedAnalysisError(ValidationError):
    """Analysis type has no registered handler."""

    def __init__(self, analysis_type: str):
        super().__init__(
            code="UNSUPPORTED_ANALYSIS",
            message=f"No handler registered for {analysis_type}",
            details={"analysis_type": analysis_type}
        )
