"""Database module for VoiceAI.

Provides:
- SQLAlchemy ORM models
- Async session management with dependency injection
- Repository pattern for data access
- Database initialization and lifecycle management
"""
from voiceai.db.base import (
    Base,
    UUIDMixin,
    TimestampMixin,
)
from voiceai.db.session import (
    get_engine,
    get_session_factory,
    get_db,
    get_db_context,
    init_db,
    close_db,
    create_test_engine,
    get_test_session_factory,
)

__all__ = [
    # Base and mixins
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    # Session management
    "get_engine",
    "get_session_factory",
    "get_db",
    "get_db_context",
    "init_db",
    "close_db",
    # Testing
    "create_test_engine",
    "get_test_session_factory",
]
