"""Core building blocks shared across VoiceAI modules."""

from voiceai.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    EmailDeliveryError,
    IntegrationError,
    PDFGenerationError,
    RecordAlreadyExistsError,
    RecordNotFoundError,
    ReportError,
    StorageError,
    StoragePathError,
    VoiceAIError,
)

__all__ = [
    "VoiceAIError",
    "ConfigurationError",
    "DatabaseError",
    "RecordNotFoundError",
    "RecordAlreadyExistsError",
    "ReportError",
    "PDFGenerationError",
    "StorageError",
    "StoragePathError",
    "IntegrationError",
    "EmailDeliveryError",
]
