"""
Capture session REST endpoints.

HTTP counterpart of the ``/ws/capture`` WebSocket for clients that push
loudness samples in batches. Samples posted here are processed inline and
the raised events are returned in the response.
"""

import logging

from fastapi import APIRouter, Response

from src.core.exceptions import NoActiveSessionError
from src.core.models import (
    DetectedClip,
    FilePathRequest,
    SamplesRequest,
    SamplesResponse,
    SessionOpenRequest,
    SessionStartRequest,
    SessionStateResponse,
    SessionStopRequest,
)
from src.services import orchestrator
from src.services.orchestrator import CaptureSession
from src.services.speech import LoudnessSample
from src.services.storage.database import get_session
from src.services.storage.repository import RecordingRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["session"])


def _require_session() -> CaptureSession:
    session = orchestrator.get_active_session()
    if session is None:
        raise NoActiveSessionError()
    return session


def _state(session: CaptureSession) -> SessionStateResponse:
    speech = session.speech_state
    return SessionStateResponse(
        recording_id=session.recording_id,
        capturing=session.capturing,
        current_take_id=session.current_take_id,
        speech_state=str(speech.kind),
        clip_id=speech.clip_id,
        live_clips=session.live.clips,
        can_undo=session.archive.can_undo,
    )


@router.post("/open", response_model=SessionStateResponse)
async def open_session(body: SessionOpenRequest):
    """Open (or re-attach to) the capture session of a recording."""
    async with get_session() as db:
        await RecordingRepository(db).get_recording(body.recording_id)
    session = await orchestrator.open_session(body.recording_id)
    return _state(session)


@router.get("", response_model=SessionStateResponse)
async def get_state():
    return _state(_require_session())


@router.post("/start", response_model=SessionStateResponse)
async def start_take(body: SessionStartRequest | None = None):
    """The recorder started: begin a new take."""
    session = _require_session()
    await session.recording_started(started_at_ms=body.started_at_ms if body else None)
    return _state(session)


@router.post("/samples", response_model=SamplesResponse)
async def push_samples(body: SamplesRequest):
    """Feed a batch of loudness samples in order."""
    session = _require_session()
    await session.drain()
    events: list[dict] = []
    for payload in body.samples:
        sample = LoudnessSample(timestamp_ms=payload.timestamp, level_db=payload.level_db)
        events.extend(session.process_sample(sample))
    return SamplesResponse(events=events, speech_state=str(session.speech_state.kind))


@router.post("/file-path", status_code=204)
async def report_file_path(body: FilePathRequest):
    """The recorder reported the output file of the current take."""
    session = _require_session()
    await session.drain()
    await session.on_file_path(body.file_path)
    return Response(status_code=204)


@router.post("/stop", response_model=list[DetectedClip])
async def stop_take(body: SessionStopRequest | None = None):
    """The recorder stopped: detect clips in the finished take file."""
    session = _require_session()
    return await session.recording_stopped(file_path=body.file_path if body else None)


@router.post("/close", status_code=204)
async def close():
    await orchestrator.close_session()
    return Response(status_code=204)
