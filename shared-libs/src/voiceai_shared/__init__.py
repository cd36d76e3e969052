"""VoiceAI shared libraries.

Minimal utilities shared by the VoiceAI services.
"""

__version__ = "0.1.0"

from voiceai_shared.logging import get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
]
