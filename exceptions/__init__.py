"""
Custom exceptions module.

Components raise these; the engine entry point turns them into
error payloads via AppError.to_dict().
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ValidationError,

    # Range / data
    InvalidRangeError,
    InsufficientDataError,
    GranularityRequiredError,
    BatchLimitExceededError,

    # Costing
    UnitConversionError,

    # Dispatch
    UnsupportedAnalysisError,
)

__all__ = [
    # Base
    "AppError",
    "ValidationError",

    # Range / data
    "InvalidRangeError",
    "InsufficientDataError",
    "GranularityRequiredError",
    "BatchLimitExceededError",

    # Costing
    "UnitConversionError",

    # Dispatch
    "UnsupportedAnalysisError",
]
