"""Tests for SqlClipStore against a real SQLite database.

The test engine is injected into the database module so every store call
opens its own ``get_session()`` transaction, as in production.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from src.core.exceptions import ClipNotFoundError, PersistenceError, TakeNotFoundError
from src.services.storage import database
from src.services.storage.repository import RecordingRepository
from src.services.storage.store import SqlClipStore


@pytest.fixture
async def store(db_engine):
    database._engine = db_engine
    database._session_factory = None
    yield SqlClipStore()
    database.reset_engine()


@pytest.fixture
async def recording_id(store) -> str:
    async with database.get_session() as session:
        recording = await RecordingRepository(session).create_recording(name="Store test")
        return recording.id


def _row(clip_id: str, start: float, end: float, position: int) -> dict:
    return {"id": clip_id, "start_time": start, "end_time": end, "position": position}


async def test_take_roundtrip(store, recording_id) -> None:
    await store.create_take("t1", recording_id, 1)
    await store.set_take_file_path("t1", "/videos/t1.mp4")

    takes = await store.list_takes_for_recording(recording_id)
    assert [(t.id, t.file_path, t.take_number) for t in takes] == [("t1", "/videos/t1.mp4", 1)]


async def test_file_path_for_missing_take(store) -> None:
    with pytest.raises(TakeNotFoundError):
        await store.set_take_file_path("nope", "/videos/x.mp4")


async def test_save_archive_restore_reorder(store, recording_id) -> None:
    await store.create_take("t1", recording_id, 1)
    assert await store.next_clip_position(recording_id) == 0

    await store.save_clips_for_take(
        recording_id, "t1", [_row("a", 0.0, 1.0, 0), _row("b", 2.0, 3.0, 1), _row("c", 4.0, 5.0, 2)]
    )
    assert await store.next_clip_position(recording_id) == 3

    await store.archive_clip("b")
    assert [c.id for c in await store.list_clips_for_recording(recording_id)] == ["a", "c"]

    await store.restore_clip("b")
    await store.reorder_clips(recording_id, ["c", "b", "a"])
    clips = await store.list_clips_for_recording(recording_id)
    assert [(c.id, c.position) for c in clips] == [("c", 0), ("b", 1), ("a", 2)]
    assert clips[0].source_start_time == 4.0


async def test_archive_missing_clip(store) -> None:
    with pytest.raises(ClipNotFoundError):
        await store.archive_clip("nope")


async def test_lock_contention_is_retried(store, recording_id) -> None:
    locked = OperationalError("UPDATE", {}, Exception("database is locked"))
    real = RecordingRepository.create_take
    calls = AsyncMock(side_effect=[locked, None])

    async def flaky(self, *args, **kwargs):
        if await calls() is None:
            return await real(self, *args, **kwargs)

    with patch.object(RecordingRepository, "create_take", flaky):
        await store.create_take("t1", recording_id, 1)

    assert calls.await_count == 2
    assert [t.id for t in await store.list_takes_for_recording(recording_id)] == ["t1"]


async def test_persistent_failure_becomes_persistence_error(store, recording_id) -> None:
    locked = OperationalError("UPDATE", {}, Exception("database is locked"))
    with patch.object(RecordingRepository, "create_take", AsyncMock(side_effect=locked)):
        with pytest.raises(PersistenceError):
            await store.create_take("t1", recording_id, 1)
