"""VoiceAI: monthly activity reports for the voice receptionist dashboard."""

__version__ = "0.1.0"
