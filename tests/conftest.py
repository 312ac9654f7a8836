"""Shared pytest fixtures for the LiveCut test suite.

Provides common fixtures used across unit and integration tests,
including a mock clip store, a mock detector, database setup helpers
and PCM audio samples.
"""

import math
import struct
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from src.core.models import TakeRecord
from src.services.detection.base import BaseClipDetector
from src.services.storage.base import ClipStore
from src.services.storage.database import get_session_factory, init_db, reset_engine
from src.services.storage.repository import RecordingRepository

# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_engine(tmp_path):
    """Fresh SQLite database with all tables created.

    Yields:
        AsyncEngine: Engine bound to a per-test database file.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'livecut.db'}", echo=False)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def repository(db_engine):
    """RecordingRepository on a session that is rolled back after the test."""
    reset_engine()
    factory = get_session_factory(db_engine)
    async with factory() as session:
        yield RecordingRepository(session)
        await session.rollback()
    reset_engine()


# ---------------------------------------------------------------------------
# Store / Detector Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_store():
    """Create a mock clip store for unit testing.

    Returns:
        AsyncMock: A mock implementing the ClipStore interface with an
        empty recording (no takes, no clips, next position 0).
    """
    store = AsyncMock(spec=ClipStore)
    store.list_takes_for_recording.return_value = []
    store.list_clips_for_recording.return_value = []
    store.next_clip_position.return_value = 0
    return store


@pytest.fixture
def mock_detector():
    """Create a mock offline detector that finds no clips."""
    detector = AsyncMock(spec=BaseClipDetector)
    detector.detect.return_value = []
    return detector


@pytest.fixture
def make_take():
    """Factory for ``TakeRecord`` values."""

    def _make(take_id: str, file_path: str | None = None, take_number: int = 1, recording_id: str = "rec-1"):
        return TakeRecord(
            id=take_id,
            recording_id=recording_id,
            file_path=file_path,
            take_number=take_number,
            created_at=datetime.now(UTC),
        )

    return _make


# ---------------------------------------------------------------------------
# Audio Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pcm_bytes():
    """Generate 1 second of 440Hz sine-wave PCM audio (16kHz, 16-bit, mono).

    Returns:
        bytes: Raw PCM audio data.
    """
    sample_rate = 16000
    amplitude = 16000  # ~50% of max int16

    samples = []
    for i in range(sample_rate):
        value = int(amplitude * math.sin(2 * math.pi * 440.0 * i / sample_rate))
        samples.append(struct.pack("<h", value))
    return b"".join(samples)


@pytest.fixture
def silent_pcm_bytes():
    """Generate 1 second of silence as PCM audio (16kHz, 16-bit, mono)."""
    return b"\x00\x00" * 16000
