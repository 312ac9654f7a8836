"""Unit tests for the capture session orchestrator."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from src.core.config import get_settings
from src.core.exceptions import NoCurrentTakeError, PersistenceError, RecordingAlreadyActiveError
from src.core.models import DetectedClip, LiveClip
from src.services import orchestrator
from src.services.orchestrator import CaptureSession
from src.services.speech.detector import SPEAKING_THRESHOLD_DB, LoudnessSample, SpeechDetector

LOUD = SPEAKING_THRESHOLD_DB + 10
QUIET = SPEAKING_THRESHOLD_DB - 10

# Warm-up gap, then one utterance from 1.1 s confirmed at 2.6 s, ended at 3.9 s
UTTERANCE = [
    (100, QUIET),
    (1000, QUIET),
    (1100, LOUD),
    (2600, LOUD),
    (3000, QUIET),
    (3900, QUIET),
]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_session(mock_store, mock_detector, notify=None) -> CaptureSession:
    session = CaptureSession(
        recording_id="rec-1",
        store=mock_store,
        detector=mock_detector,
        notify=notify or AsyncMock(),
    )
    session._speech = SpeechDetector(new_id=lambda: "clip-1")
    return session


def _run(session: CaptureSession, readings) -> list[dict]:
    events = []
    for t, db in readings:
        events.extend(session.process_sample(LoudnessSample(t, db)))
    return events


@pytest.fixture(autouse=True)
async def _reset_singleton():
    """Ensure the singleton is cleared before and after each test."""
    orchestrator._active_session = None
    yield
    await orchestrator.cleanup()
    orchestrator._active_session = None


@pytest.fixture
def session(mock_store, mock_detector) -> CaptureSession:
    return _make_session(mock_store, mock_detector)


# ---------------------------------------------------------------------------
# Sample pipeline
# ---------------------------------------------------------------------------


class TestProcessSample:
    async def test_full_utterance_produces_clip(self, session) -> None:
        take_id = await session.recording_started(started_at_ms=0)
        events = _run(session, UTTERANCE)

        assert events == [
            {"type": "speech_state", "state": "silent", "clip_id": None},
            {"type": "speech_state", "state": "speaking", "clip_id": None},
            {"type": "speech_state", "state": "clip-active", "clip_id": "clip-1"},
            {"type": "clip_started", "clip_id": "clip-1", "start_time": 1.1},
            {"type": "speech_state", "state": "silent", "clip_id": None},
            {"type": "clip_ended", "clip_id": "clip-1", "end_time": 3.9},
        ]
        assert session.live.clips == [
            LiveClip(id="clip-1", take_id=take_id, start_time=1.1, end_time=3.9)
        ]

    async def test_breath_pause_keeps_first_speech_start(self, session) -> None:
        await session.recording_started(started_at_ms=0)
        _run(session, [(100, QUIET), (1000, QUIET), (1100, LOUD), (1500, QUIET), (2000, LOUD), (2600, LOUD)])
        assert session.live.get("clip-1").start_time == 1.1

    async def test_take_start_defaults_to_first_sample(self, session) -> None:
        await session.recording_started()
        _run(session, [(5000 + t, db) for t, db in UTTERANCE])
        clip = session.live.get("clip-1")
        assert (clip.start_time, clip.end_time) == (1.0, 3.8)

    async def test_no_clips_when_not_capturing(self, session) -> None:
        events = _run(session, UTTERANCE)
        assert {e["type"] for e in events} == {"speech_state"}
        assert session.live.clips == []

    async def test_silence_then_short_sound_opens_nothing(self, session) -> None:
        await session.recording_started(started_at_ms=0)
        events = _run(session, [(0, QUIET), (820, QUIET), (830, LOUD)])
        assert [e["state"] for e in events] == ["silent", "speaking"]
        assert len(session.live) == 0

    async def test_new_take_restarts_warm_up(self, session) -> None:
        await session.recording_started(started_at_ms=0)
        _run(session, UTTERANCE)
        await session.recording_started(started_at_ms=10_000)
        assert str(session.speech_state.kind) == "warming-up"
        assert session.live.clips == []


# ---------------------------------------------------------------------------
# Queue consumer
# ---------------------------------------------------------------------------


class TestQueue:
    async def test_enqueued_samples_are_notified_in_order(self, mock_store, mock_detector) -> None:
        notify = AsyncMock()
        session = _make_session(mock_store, mock_detector, notify)
        await session.recording_started(started_at_ms=0)
        session.start()
        for t, db in UTTERANCE:
            session.enqueue_sample(LoudnessSample(t, db))
        await session.drain()
        await session.stop()

        types = [call.args[0]["type"] for call in notify.await_args_list]
        assert types == [
            "speech_state",
            "speech_state",
            "speech_state",
            "clip_started",
            "speech_state",
            "clip_ended",
        ]

    async def test_file_path_is_applied_after_queued_samples(self, session, mock_store) -> None:
        take_id = await session.recording_started(started_at_ms=0)
        session.start()
        for t, db in UTTERANCE:
            session.enqueue_sample(LoudnessSample(t, db))
        session.enqueue_file_path("/videos/take-1.mp4")
        await session.stop()

        mock_store.set_take_file_path.assert_awaited_once_with(take_id, "/videos/take-1.mp4")
        assert session.live.get("clip-1").file_path == "/videos/take-1.mp4"

    async def test_handler_failure_reports_error_and_continues(self, mock_store, mock_detector) -> None:
        notify = AsyncMock()
        session = _make_session(mock_store, mock_detector, notify)
        await session.recording_started(started_at_ms=0)
        mock_store.set_take_file_path.side_effect = PersistenceError()
        session.start()
        session.enqueue_file_path("/videos/take-1.mp4")
        session.enqueue_sample(LoudnessSample(0, QUIET))
        session.enqueue_sample(LoudnessSample(900, QUIET))
        await session.stop()

        sent = [call.args[0] for call in notify.await_args_list]
        assert sent[0]["type"] == "error"
        assert sent[1] == {"type": "speech_state", "state": "silent", "clip_id": None}

    async def test_notify_failure_is_non_fatal(self, mock_store, mock_detector) -> None:
        session = _make_session(mock_store, mock_detector, AsyncMock(side_effect=RuntimeError("gone")))
        session.start()
        session.enqueue_sample(LoudnessSample(0, QUIET))
        session.enqueue_sample(LoudnessSample(900, QUIET))
        await session.stop()
        assert str(session.speech_state.kind) == "silent"


# ---------------------------------------------------------------------------
# Take lifecycle
# ---------------------------------------------------------------------------


class TestRecordingLifecycle:
    async def test_take_numbers_follow_existing_takes(self, session, mock_store, make_take) -> None:
        mock_store.list_takes_for_recording.return_value = [make_take("t1"), make_take("t2", take_number=2)]
        take_id = await session.recording_started()
        mock_store.create_take.assert_awaited_once_with(take_id, "rec-1", 3)
        assert session.capturing

    async def test_failed_start_is_not_capturing(self, session, mock_store) -> None:
        mock_store.create_take.side_effect = PersistenceError()
        with pytest.raises(PersistenceError):
            await session.recording_started()
        assert not session.capturing
        assert session.current_take_id is None

    async def test_path_before_start_is_applied_to_new_take(self, session, mock_store) -> None:
        await session.on_file_path("/videos/early.mp4")
        take_id = await session.recording_started()
        mock_store.set_take_file_path.assert_awaited_once_with(take_id, "/videos/early.mp4")

    async def test_stop_detects_and_saves_clips(self, session, mock_store, mock_detector) -> None:
        detected = [
            DetectedClip(input_video="/videos/t.mp4", start_time=0.0, end_time=2.0),
            DetectedClip(input_video="/videos/t.mp4", start_time=3.0, end_time=6.3),
        ]
        mock_detector.detect.return_value = detected
        mock_store.next_clip_position.return_value = 3

        take_id = await session.recording_started(started_at_ms=0)
        _run(session, UTTERANCE)
        result = await session.recording_stopped("/videos/t.mp4")

        assert result == detected
        assert not session.capturing
        assert session.live.clips == []
        mock_store.set_take_file_path.assert_awaited_once_with(take_id, "/videos/t.mp4")
        assert mock_detector.detect.await_args.args[0] == "/videos/t.mp4"

        recording_id, saved_take, rows = mock_store.save_clips_for_take.await_args.args
        assert (recording_id, saved_take) == ("rec-1", take_id)
        assert [(r["start_time"], r["end_time"], r["position"]) for r in rows] == [
            (0.0, 2.0, 3),
            (3.0, 6.3, 4),
        ]
        session.notify.assert_any_await({"type": "clips_detected", "take_id": take_id, "count": 2})
        assert session.current_take_id is None

    async def test_stop_without_file_path_skips_detection(self, session, mock_detector) -> None:
        await session.recording_started()
        assert await session.recording_stopped() == []
        mock_detector.detect.assert_not_awaited()

    async def test_path_after_stop_completes_the_take(self, session, mock_store, mock_detector) -> None:
        take_id = await session.recording_started()
        assert await session.recording_stopped() == []
        assert session.current_take_id == take_id

        await session.on_file_path("/videos/late.mp4")
        mock_store.set_take_file_path.assert_awaited_once_with(take_id, "/videos/late.mp4")
        mock_detector.detect.assert_awaited_once()
        assert mock_detector.detect.await_args.args[0] == "/videos/late.mp4"
        assert session.current_take_id is None

    async def test_path_after_release_waits_for_next_take(self, session, mock_store) -> None:
        first = await session.recording_started()
        await session.recording_stopped("/videos/t1.mp4")
        await session.on_file_path("/videos/t2.mp4")
        second = await session.recording_started()

        calls = [c.args for c in mock_store.set_take_file_path.await_args_list]
        assert calls == [(first, "/videos/t1.mp4"), (second, "/videos/t2.mp4")]

    async def test_redetect_defaults_to_finished_take(
        self, session, mock_store, mock_detector, make_take
    ) -> None:
        take_id = await session.recording_started()
        await session.recording_stopped("/videos/t.mp4")
        mock_store.list_takes_for_recording.return_value = [make_take(take_id, "/videos/t.mp4")]
        mock_detector.detect.reset_mock()

        await session.redetect(threshold_db=-45)
        mock_detector.detect.assert_awaited_once_with("/videos/t.mp4", -45)

    async def test_relative_path_is_placed_in_recordings_dir(self, session, mock_store) -> None:
        take_id = await session.recording_started()
        await session.on_file_path("take-1.mp4")
        expected = str(Path(get_settings().recordings_dir) / "take-1.mp4")
        mock_store.set_take_file_path.assert_awaited_once_with(take_id, expected)

    async def test_unstored_early_path_keeps_take_capturing(self, session, mock_store) -> None:
        await session.on_file_path("/videos/early.mp4")
        mock_store.set_take_file_path.side_effect = PersistenceError()
        with pytest.raises(PersistenceError):
            await session.recording_started()
        assert session.capturing
        assert session.current_take_id is not None


# ---------------------------------------------------------------------------
# Editing
# ---------------------------------------------------------------------------


class TestEditing:
    async def test_redetect_without_take_raises(self, session) -> None:
        with pytest.raises(NoCurrentTakeError):
            await session.redetect()

    async def test_redetect_take_without_file_raises(self, session, mock_store, make_take) -> None:
        mock_store.list_takes_for_recording.return_value = [make_take("t1")]
        with pytest.raises(NoCurrentTakeError):
            await session.redetect(take_id="t1")

    async def test_redetect_uses_threshold(self, session, mock_store, mock_detector, make_take) -> None:
        mock_store.list_takes_for_recording.return_value = [make_take("t1", "/videos/t1.mp4")]
        await session.redetect(take_id="t1", threshold_db=-40)
        mock_detector.detect.assert_awaited_once_with("/videos/t1.mp4", -40)
        assert mock_store.save_clips_for_take.await_args.args[1] == "t1"

    async def test_remove_and_undo(self, session, mock_store) -> None:
        await session.remove_clip("c1")
        assert await session.undo_remove() == "c1"
        mock_store.archive_clip.assert_awaited_once_with("c1")
        mock_store.restore_clip.assert_awaited_once_with("c1")

    async def test_reorder_skips_unpersisted_clips(self, session, mock_store) -> None:
        clips = [
            LiveClip(id="b", persisted_id="b", take_id="t", start_time=0.0, end_time=1.0),
            LiveClip(id="live", take_id="t", start_time=2.0),
            LiveClip(id="a", persisted_id="a", take_id="t", start_time=3.0, end_time=4.0),
        ]
        await session.reorder_clips(clips)
        mock_store.reorder_clips.assert_awaited_once_with("rec-1", ["b", "a"])

    async def test_reorder_nothing_persisted_is_noop(self, session, mock_store) -> None:
        await session.reorder_clips([LiveClip(id="live", take_id="t", start_time=0.0)])
        mock_store.reorder_clips.assert_not_awaited()


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------


class TestSingleton:
    async def test_open_returns_same_session_for_recording(self, mock_store, mock_detector) -> None:
        first = await orchestrator.open_session("rec-1", store=mock_store, detector=mock_detector)
        second = await orchestrator.open_session("rec-1", store=mock_store, detector=mock_detector)
        assert first is second
        assert orchestrator.get_active_session() is first

    async def test_other_recording_while_capturing_raises(self, mock_store, mock_detector) -> None:
        session = await orchestrator.open_session("rec-1", store=mock_store, detector=mock_detector)
        await session.recording_started()
        with pytest.raises(RecordingAlreadyActiveError):
            await orchestrator.open_session("rec-2", store=mock_store, detector=mock_detector)

    async def test_idle_session_is_replaced(self, mock_store, mock_detector) -> None:
        await orchestrator.open_session("rec-1", store=mock_store, detector=mock_detector)
        second = await orchestrator.open_session("rec-2", store=mock_store, detector=mock_detector)
        assert orchestrator.get_active_session() is second
        assert second.recording_id == "rec-2"

    async def test_close_clears_active(self, mock_store, mock_detector) -> None:
        await orchestrator.open_session("rec-1", store=mock_store, detector=mock_detector)
        await orchestrator.close_session()
        assert orchestrator.get_active_session() is None
