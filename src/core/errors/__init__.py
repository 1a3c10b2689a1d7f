"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- PipelineError hierarchy for typed exceptions
- Shard processing failures (DecodeFailure, WriteFailure, EncodeFailure)
- Classification utilities for error handling
"""

from core.errors.exceptions import (
    # Enums
    ErrorCategory,
    # Base classes
    PipelineError,
    TransientError,
    PermanentError,
    ConfigurationError,
    # Shard processing errors
    DecodeFailure,
    WriteFailure,
    EncodeFailure,
    # Classification utilities
    classify_exception,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "PipelineError",
    "TransientError",
    "PermanentError",
    "ConfigurationError",
    # Shard processing errors
    "DecodeFailure",
    "WriteFailure",
    "EncodeFailure",
    # Classification utilities
    "classify_exception",
]
