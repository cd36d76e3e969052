"""Structured logging helpers."""

from voiceai_shared.logging.setup import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
