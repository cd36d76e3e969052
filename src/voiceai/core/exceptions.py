"""VoiceAI Exception Hierarchy.

Provides structured error handling with context preservation
and proper HTTP status code mapping.
"""

from __future__ import annotations

from typing import Any


class VoiceAIError(Exception):
    """Base exception for all VoiceAI errors.

    All custom exceptions should inherit from this class.
    Provides:
    - Structured error context
    - HTTP status code mapping
    - Logging-friendly representation
    """

    status_code: int = 500
    error_code: str = "VOICEAI_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Additional context for debugging
            cause: Original exception if wrapping
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result

    def __str__(self) -> str:
        """String representation for logging."""
        parts = [f"{self.error_code}: {self.message}"]
        if self.details:
            parts.append(f"details={self.details}")
        if self.cause:
            parts.append(f"cause={self.cause}")
        return " | ".join(parts)


class ConfigurationError(VoiceAIError):
    """Required configuration is missing or invalid."""

    error_code = "CONFIGURATION_ERROR"


# =============================================================================
# Database Errors
# =============================================================================


class DatabaseError(VoiceAIError):
    """Base class for database-related errors."""

    status_code = 503
    error_code = "DATABASE_ERROR"


class RecordNotFoundError(DatabaseError):
    """Requested record not found."""

    status_code = 404
    error_code = "RECORD_NOT_FOUND"


class RecordAlreadyExistsError(DatabaseError):
    """Record with given identifier already exists."""

    status_code = 409
    error_code = "RECORD_ALREADY_EXISTS"


# =============================================================================
# Report Pipeline Errors
# =============================================================================


class ReportError(VoiceAIError):
    """Base class for monthly report pipeline errors."""

    error_code = "REPORT_ERROR"


class PDFGenerationError(ReportError):
    """Headless browser could not be started or failed to render."""

    status_code = 503
    error_code = "PDF_GENERATION_ERROR"


class StorageError(ReportError):
    """Report file could not be written or read."""

    error_code = "STORAGE_ERROR"


class StoragePathError(StorageError):
    """Path escapes the storage directory."""

    status_code = 400
    error_code = "STORAGE_PATH_ERROR"


# =============================================================================
# Integration Errors
# =============================================================================


class IntegrationError(VoiceAIError):
    """Base class for external integration errors."""

    status_code = 502
    error_code = "INTEGRATION_ERROR"


class EmailDeliveryError(IntegrationError):
    """Email provider rejected or failed to deliver a message."""

    error_code = "EMAIL_DELIVERY_ERROR"
