"""API routers for VoiceAI."""
