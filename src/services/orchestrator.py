"""Capture session orchestrator.

Wires the live pipeline for one opened recording::

    samples -> SpeechDetector -> ClipBoundaryWatcher -> LiveClipSession

next to the take lifecycle, the undo stack and the merged timeline.
Samples and file-path notifications can be pushed through one
``asyncio.Queue`` drained by a single consumer task, so they are applied
in arrival order by one owner. A module-level singleton keeps at most one
capturing session.

Usage::

    from src.services.orchestrator import open_session, close_session

    session = await open_session(recording_id, notify_callback)
    await session.recording_started()
    session.enqueue_sample(LoudnessSample(timestamp_ms=..., level_db=...))
    await session.recording_stopped("/videos/take-1.mp4")
    await close_session()
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from src.core.config import get_settings
from src.core.exceptions import NoCurrentTakeError, RecordingAlreadyActiveError
from src.core.models import DetectedClip, LiveClip
from src.services.detection import BaseClipDetector, create_detector
from src.services.session.archive import UndoableArchiveStack
from src.services.session.live_clips import LiveClipSession
from src.services.session.takes import TakeLifecycleManager
from src.services.session.timeline import ClipTimelineMerger
from src.services.speech.detector import (
    LoudnessSample,
    PublicSpeechState,
    SpeechDetector,
    SpeechStateKind,
)
from src.services.speech.watcher import ClipBoundaryWatcher, ClipEnded, ClipStarted
from src.services.storage.base import ClipStore
from src.services.storage.store import SqlClipStore

logger = logging.getLogger(__name__)

Notify = Callable[[dict], Awaitable[None]]


async def discard_events(_event: dict) -> None:
    return None


def resolve_take_path(file_path: str) -> str:
    """Place a bare or relative recorder path under ``Settings.recordings_dir``."""
    path = Path(file_path)
    if path.is_absolute():
        return file_path
    return str(Path(get_settings().recordings_dir) / path)


@dataclass
class PendingFilePath:
    """A file-path notification waiting in the event queue."""

    file_path: str


class CaptureSession:
    """Live clip detection and editing for one recording.

    Args:
        recording_id: The recording whose takes are captured.
        store: Clip store (defaults to the SQL store).
        detector: Offline re-detection backend (defaults to settings).
        notify: Async callback receiving event dicts.
    """

    def __init__(
        self,
        recording_id: str,
        store: ClipStore | None = None,
        detector: BaseClipDetector | None = None,
        notify: Notify | None = None,
    ) -> None:
        settings = get_settings()
        self.recording_id = recording_id
        self.notify: Notify = notify or discard_events
        self._store = store or SqlClipStore()
        self._detector = detector or create_detector(provider=settings.detector_provider)

        self.takes = TakeLifecycleManager(self._store)
        self.live = LiveClipSession(self.takes)
        self.archive = UndoableArchiveStack(self._store)
        self.merger = ClipTimelineMerger(self._store, self.live)

        self._speech = SpeechDetector()
        self._watcher = ClipBoundaryWatcher()
        self._capturing = False
        self._take_started_at_ms: float | None = None
        self._speech_start: float | None = None
        self._awaiting_file_path = False
        self._last_take_id: str | None = None

        self._queue: asyncio.Queue[LoudnessSample | PendingFilePath] = asyncio.Queue()
        self._task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def capturing(self) -> bool:
        return self._capturing

    @property
    def speech_state(self) -> PublicSpeechState:
        return self._speech.public_state

    @property
    def current_take_id(self) -> str | None:
        return self.takes.current_take_id

    # ------------------------------------------------------------------
    # Recording lifecycle
    # ------------------------------------------------------------------

    async def recording_started(self, started_at_ms: float | None = None) -> str:
        """Begin a new take; detection restarts from warm-up.

        A previous take that is still waiting for its file path is
        superseded. When the take is created but a path buffered for it
        cannot be stored, the error propagates while capture goes on; the
        path is retried when the take stops.

        Args:
            started_at_ms: Sample-clock time the take began. When omitted,
                the first sample of the take marks the start.

        Returns:
            The new take id.
        """
        self._speech.reset()
        self._watcher.reset()
        self._speech_start = None
        self._take_started_at_ms = started_at_ms
        self._awaiting_file_path = False
        self._capturing = True

        takes = await self._store.list_takes_for_recording(self.recording_id)
        try:
            return await self.live.start_new_take(self.recording_id, len(takes) + 1)
        except Exception:
            self._capturing = self.takes.current_take_id is not None
            raise

    async def recording_stopped(self, file_path: str | None = None) -> list[DetectedClip]:
        """Finish the take: store its file path and replace live clips.

        Live clips are dropped first; the clips detected offline from the
        finished file are persisted and show up through the store. Without
        a known file the take stays current until the recorder reports it
        (see :meth:`on_file_path`); otherwise it is released.

        Returns:
            The clips detected in the take file (empty while the take has no file).
        """
        await self.drain()
        self._capturing = False
        self._take_started_at_ms = None
        self._speech_start = None
        self.live.clear_live_clips()

        take_id = self.takes.current_take_id
        if file_path:
            file_path = resolve_take_path(file_path)
            await self.live.on_take_file_path_received(file_path)
        elif take_id is not None:
            await self.takes.flush_pending_path()
        if take_id is None:
            return []
        file_path = file_path or self.takes.current_file_path or await self._take_file_path(take_id)
        if not file_path:
            logger.info("Take %s has no video file yet; waiting for the recorder", take_id)
            self._awaiting_file_path = True
            return []
        return await self._finish_take(take_id, file_path)

    async def on_file_path(self, file_path: str) -> None:
        """Recorder reported the output file of the current (or next) take.

        A path for a stopped take that was waiting for it completes that
        take: clips are detected and the take is released.
        """
        file_path = resolve_take_path(file_path)
        await self.live.on_take_file_path_received(file_path)
        take_id = self.takes.current_take_id
        if self._awaiting_file_path and not self._capturing and take_id is not None:
            self._awaiting_file_path = False
            await self._finish_take(take_id, file_path)

    async def _finish_take(self, take_id: str, file_path: str) -> list[DetectedClip]:
        try:
            return await self._detect_and_save(take_id, file_path)
        finally:
            # The path is stored; detection can be rerun through redetect()
            self.takes.end_take()
            self._last_take_id = take_id

    # ------------------------------------------------------------------
    # Sample pipeline
    # ------------------------------------------------------------------

    def _offset_seconds(self, now_ms: float) -> float | None:
        if self._take_started_at_ms is None:
            return None
        return (now_ms - self._take_started_at_ms) / 1000

    def process_sample(self, sample: LoudnessSample) -> list[dict]:
        """Run one sample through detector, watcher and live clip list.

        Returns:
            Event dicts raised by this sample (state change, clip boundaries).
        """
        if self._capturing and self._take_started_at_ms is None:
            self._take_started_at_ms = sample.timestamp_ms

        previous = self._watcher.previous
        current = self._speech.feed(sample)
        boundary = self._watcher.observe(current, sample.timestamp_ms)
        events: list[dict] = []

        if current != previous:
            events.append(
                {"type": "speech_state", "state": str(current.kind), "clip_id": current.clip_id}
            )

        # Speech start is the first "speaking" reading after silence or warm-up
        if current.kind == SpeechStateKind.speaking and self._speech_start is None:
            self._speech_start = self._offset_seconds(sample.timestamp_ms)
        elif current.kind in (SpeechStateKind.silent, SpeechStateKind.warming_up):
            self._speech_start = None

        if isinstance(boundary, ClipStarted):
            if self._capturing and self._speech_start is not None:
                clip = self.live.add_live_clip(boundary.clip_id, self._speech_start)
                if clip is not None:
                    events.append(
                        {"type": "clip_started", "clip_id": clip.id, "start_time": clip.start_time}
                    )
        elif isinstance(boundary, ClipEnded):
            end_time = self._offset_seconds(boundary.at_ms)
            if self._capturing and end_time is not None:
                clip = self.live.close_live_clip(end_time)
                if clip is not None:
                    events.append(
                        {"type": "clip_ended", "clip_id": clip.id, "end_time": clip.end_time}
                    )
            self._speech_start = None

        return events

    def enqueue_sample(self, sample: LoudnessSample) -> None:
        """Queue a sample for the consumer task (non-blocking)."""
        self._queue.put_nowait(sample)

    def enqueue_file_path(self, file_path: str) -> None:
        """Queue a file-path notification behind the samples already queued."""
        self._queue.put_nowait(PendingFilePath(file_path))

    def start(self) -> None:
        """Launch the queue consumer task."""
        if self._task is None:
            self._task = asyncio.create_task(self._consume())

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        if self._task is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Handle the remaining queued events, then stop the consumer."""
        if self._task is None:
            return
        await self._queue.join()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _consume(self) -> None:
        logger.info("Event loop started for recording %s", self.recording_id)
        while True:
            item = await self._queue.get()
            try:
                await self._handle(item)
            except Exception:
                logger.exception("Failed to handle %r for recording %s", item, self.recording_id)
                await self._emit({"type": "error", "detail": "Failed to handle capture event"})
            finally:
                self._queue.task_done()

    async def _handle(self, item: LoudnessSample | PendingFilePath) -> None:
        if isinstance(item, PendingFilePath):
            await self.on_file_path(item.file_path)
            return
        for event in self.process_sample(item):
            await self._emit(event)

    async def _emit(self, event: dict) -> None:
        try:
            await self.notify(event)
        except Exception:
            logger.warning("Notify callback failed for %s event (non-fatal)", event.get("type"))

    # ------------------------------------------------------------------
    # Re-detection & editing
    # ------------------------------------------------------------------

    async def _take_file_path(self, take_id: str) -> str | None:
        takes = await self._store.list_takes_for_recording(self.recording_id)
        return next((t.file_path for t in takes if t.id == take_id), None)

    async def _detect_and_save(
        self,
        take_id: str,
        file_path: str,
        threshold_db: int | None = None,
    ) -> list[DetectedClip]:
        threshold = threshold_db if threshold_db is not None else get_settings().silence_threshold_db
        detected = await self._detector.detect(file_path, threshold)

        start_position = await self._store.next_clip_position(self.recording_id)
        rows = [
            {
                "id": str(uuid.uuid4()),
                "start_time": clip.start_time,
                "end_time": clip.end_time,
                "position": start_position + i,
            }
            for i, clip in enumerate(detected)
        ]
        await self._store.save_clips_for_take(self.recording_id, take_id, rows)
        logger.info("Saved %d detected clips for take %s", len(rows), take_id)
        await self._emit({"type": "clips_detected", "take_id": take_id, "count": len(rows)})
        return detected

    async def redetect(
        self,
        take_id: str | None = None,
        threshold_db: int | None = None,
    ) -> list[DetectedClip]:
        """Re-run offline detection for a take.

        Defaults to the current take, else the take that finished last.
        """
        take_id = take_id or self.takes.current_take_id or self._last_take_id
        if take_id is None:
            raise NoCurrentTakeError()
        file_path = await self._take_file_path(take_id)
        if not file_path:
            raise NoCurrentTakeError(f"Take {take_id} has no video file yet")
        return await self._detect_and_save(take_id, file_path, threshold_db)

    async def remove_clip(self, clip_id: str) -> None:
        await self.archive.remove(clip_id)

    async def undo_remove(self) -> str | None:
        return await self.archive.undo()

    async def reorder_clips(self, clips: list[LiveClip] | list[str]) -> None:
        """Persist a new order; clips that are not persisted yet are skipped."""
        clip_ids = [
            c if isinstance(c, str) else c.persisted_id
            for c in clips
            if isinstance(c, str) or c.persisted_id
        ]
        if not clip_ids:
            return
        await self._store.reorder_clips(self.recording_id, clip_ids)

    async def timeline(self) -> list[LiveClip]:
        return await self.merger.timeline(self.recording_id)

    async def export_clips(self) -> list[DetectedClip]:
        return await self.merger.export_clips(self.recording_id)


# ---------------------------------------------------------------------------
# Module-level singleton management
# ---------------------------------------------------------------------------

_active_session: CaptureSession | None = None


async def open_session(
    recording_id: str,
    notify: Notify | None = None,
    store: ClipStore | None = None,
    detector: BaseClipDetector | None = None,
) -> CaptureSession:
    """Return the session for *recording_id*, opening it if needed.

    Raises:
        RecordingAlreadyActiveError: If another recording is capturing.
    """
    global _active_session
    if _active_session is not None:
        if _active_session.recording_id == recording_id:
            if notify is not None:
                _active_session.notify = notify
            return _active_session
        if _active_session.capturing:
            raise RecordingAlreadyActiveError()
        await close_session()

    session = CaptureSession(
        recording_id=recording_id,
        store=store,
        detector=detector,
        notify=notify,
    )
    session.start()
    _active_session = session
    logger.info("Opened capture session for recording %s", recording_id)
    return session


async def close_session() -> None:
    """Stop the active session after its queued events are handled."""
    global _active_session
    if _active_session is None:
        return
    session = _active_session
    _active_session = None
    await session.stop()
    logger.info("Closed capture session for recording %s", session.recording_id)


def get_active_session() -> CaptureSession | None:
    """Return the currently open session, or None."""
    return _active_session


async def cleanup() -> None:
    """Force-close the active session (called during app shutdown)."""
    await close_session()
