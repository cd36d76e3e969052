"""Pytest configuration and fixtures for VoiceAI tests."""

from __future__ import annotations

import os
import sys
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace
from typing import Any, AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio

ROOT = Path(__file__).parent.parent

# Add src and the shared libs to path
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "shared-libs" / "src"))

# Set test environment
os.environ["VOICEAI_ENV"] = "development"
os.environ["VOICEAI_DEBUG"] = "true"
os.environ["VOICEAI_DATABASE__URL"] = "sqlite+aiosqlite:///:memory:"


def make_call(**overrides: Any) -> SimpleNamespace:
    """Call-shaped object with every attribute the metrics code reads."""
    values: dict[str, Any] = {
        "status": "completed",
        "started_at": datetime(2025, 3, 5, 10, 0),
        "created_at": datetime(2025, 3, 5, 10, 0),
        "duration": 120,
        "appointment_date": None,
        "appointment_day_of_week": None,
        "booking_delay_days": None,
        "is_last_minute": None,
        "is_returning_client": None,
        "upsell_accepted": None,
        "booking_confidence": None,
        "call_quality": None,
        "conversion_result": None,
        "client_mood": None,
        "service_type": None,
        "event_type": None,
        "transcript": None,
        "keywords": None,
    }
    values.update(overrides)
    if "created_at" not in overrides and values["started_at"] is not None:
        values["created_at"] = values["started_at"]
    return SimpleNamespace(**values)


@pytest.fixture
def call_factory():
    """Factory for in-memory call objects."""
    return make_call


@pytest.fixture
def report_settings():
    from voiceai.config import ReportSettings

    return ReportSettings(timezone="Europe/Paris")


@pytest.fixture
def sample_metrics(report_settings):
    """Metrics for March 2025: four calls this month, two the month before."""
    from voiceai.services.report_metrics import build_metrics

    calls = [
        make_call(
            status="completed",
            started_at=datetime(2025, 3, 3, 9, 15),
            duration=200,
            appointment_date=datetime(2025, 3, 10, 14, 0),
        ),
        make_call(status="completed", started_at=datetime(2025, 3, 4, 9, 40), duration=160),
        make_call(status="failed", started_at=datetime(2025, 3, 5, 22, 0), duration=None),
        make_call(status="completed", started_at=datetime(2025, 3, 6, 14, 5), duration=90),
    ]
    previous = [
        make_call(status="completed", started_at=datetime(2025, 2, 10, 11, 0), duration=100),
        make_call(status="no_answer", started_at=datetime(2025, 2, 11, 12, 0), duration=0),
    ]
    return build_metrics(
        calls,
        previous,
        datetime(2025, 3, 1),
        datetime(2025, 3, 31, 23, 59, 59, 999999),
        report_settings,
    )


@pytest.fixture
def mock_settings(monkeypatch, tmp_path):
    """Settings isolated from configs/ and the environment."""
    from voiceai import config
    from voiceai.config import DatabaseSettings, ReportSettings, Settings

    settings = Settings(
        environment="test",
        debug=True,
        cron_api_key="test-cron-key",
        jwt_secret_key="test-jwt-secret",
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"),
        reports=ReportSettings(
            storage_dir=str(tmp_path / "reports"),
            scheduler_enabled=False,
        ),
    )

    monkeypatch.setattr(config, "get_settings", lambda: settings)
    for module in (
        "voiceai.api.auth",
        "voiceai.api.health",
        "voiceai.dependencies",
        "voiceai.main",
    ):
        monkeypatch.setattr(f"{module}.get_settings", lambda: settings, raising=False)
    return settings


# ============================================================================
# Async Database Fixtures
# ============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine with in-memory SQLite.

    Creates a fresh database for each test function.
    """
    from voiceai.db.session import create_test_engine

    engine = await create_test_engine()

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def file_db_engine(tmp_path):
    """SQLite file database, shared by every session of one test.

    The report pipeline opens several sessions per user; an in-memory
    database would give each connection its own empty schema.
    """
    from voiceai.db.session import create_test_engine

    engine = await create_test_engine(f"sqlite+aiosqlite:///{tmp_path / 'reports.db'}")

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(file_db_engine):
    from voiceai.db.session import get_test_session_factory

    return get_test_session_factory(file_db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator:
    """Create test database session.

    Provides a session that rolls back after each test.
    """
    from voiceai.db.session import get_test_session_factory

    async_session_factory = get_test_session_factory(db_engine)

    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def user_repository(db_session):
    """Create UserRepository instance for testing."""
    from voiceai.db.repositories import UserRepository

    return UserRepository(db_session)


@pytest_asyncio.fixture
async def call_repository(db_session):
    """Create CallRepository instance for testing."""
    from voiceai.db.repositories import CallRepository

    return CallRepository(db_session)


@pytest_asyncio.fixture
async def report_repository(db_session):
    """Create MonthlyReportRepository instance for testing."""
    from voiceai.db.repositories import MonthlyReportRepository

    return MonthlyReportRepository(db_session)


@pytest_asyncio.fixture
async def notification_repository(db_session):
    """Create NotificationRepository instance for testing."""
    from voiceai.db.repositories import NotificationRepository

    return NotificationRepository(db_session)


@pytest_asyncio.fixture
async def sample_user(db_session, user_repository):
    """Create an active subscriber renewing on 2025-04-03 10:00."""
    from voiceai.db.models import UserModel

    user = UserModel(
        id=uuid4(),
        email="cabinet@example.fr",
        role="user",
        plan="pro",
        subscription_status="active",
        subscription_current_period_end=datetime(2025, 4, 3, 10, 0),
    )

    await user_repository.create(user)
    await db_session.commit()

    return user
