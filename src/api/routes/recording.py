"""
Recording REST endpoints.

CRUD for recordings plus the clip editing operations of a recording:
listing the merged timeline, soft-removing clips with undo, reordering,
offline re-detection and the export list. Clip edits go through the
capture session of the recording so the undo history stays in one place.
"""

import logging

from fastapi import APIRouter, Query, Response

from src.core.exceptions import RecordingAlreadyActiveError
from src.core.models import (
    DetectedClip,
    LiveClip,
    RecordingCreate,
    RecordingRename,
    RecordingResponse,
    RedetectRequest,
    ReorderClipsRequest,
    TakeRecord,
    UndoResponse,
)
from src.services import orchestrator
from src.services.orchestrator import CaptureSession
from src.services.session import ClipTimelineMerger, LiveClipSession, TakeLifecycleManager
from src.services.storage.database import get_session
from src.services.storage.repository import RecordingRepository
from src.services.storage.store import SqlClipStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recordings", tags=["recordings"])


def _to_response(recording) -> RecordingResponse:
    """Convert an ORM Recording object to its API response model."""
    return RecordingResponse(
        id=recording.id,
        name=recording.name,
        created_at=recording.created_at,
        updated_at=recording.updated_at,
    )


async def _ensure_recording(recording_id: str) -> None:
    async with get_session() as session:
        await RecordingRepository(session).get_recording(recording_id)


async def _session_for(recording_id: str) -> CaptureSession:
    """Return the capture session of *recording_id*, opening it if needed."""
    active = orchestrator.get_active_session()
    if active is not None and active.recording_id == recording_id:
        return active
    await _ensure_recording(recording_id)
    return await orchestrator.open_session(recording_id)


def _read_only_merger(recording_id: str) -> ClipTimelineMerger:
    active = orchestrator.get_active_session()
    if active is not None and active.recording_id == recording_id:
        return active.merger
    store = SqlClipStore()
    return ClipTimelineMerger(store, LiveClipSession(TakeLifecycleManager(store)))


# ---------------------------------------------------------------------------
# Recordings
# ---------------------------------------------------------------------------


@router.post("", response_model=RecordingResponse, status_code=201)
async def create_recording(body: RecordingCreate | None = None):
    """Create an empty recording."""
    body = body or RecordingCreate()
    async with get_session() as session:
        recording = await RecordingRepository(session).create_recording(name=body.name)
        response = _to_response(recording)
    logger.info("Created recording %s", response.id)
    return response


@router.get("", response_model=list[RecordingResponse])
async def list_recordings(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """List recordings, newest first."""
    async with get_session() as session:
        recordings = await RecordingRepository(session).list_recordings(limit=limit, offset=offset)
        return [_to_response(r) for r in recordings]


@router.get("/{recording_id}", response_model=RecordingResponse)
async def get_recording(recording_id: str):
    async with get_session() as session:
        recording = await RecordingRepository(session).get_recording(recording_id)
        return _to_response(recording)


@router.patch("/{recording_id}", response_model=RecordingResponse)
async def rename_recording(recording_id: str, body: RecordingRename):
    async with get_session() as session:
        recording = await RecordingRepository(session).rename_recording(recording_id, body.name)
        return _to_response(recording)


@router.delete("/{recording_id}", status_code=204)
async def delete_recording(recording_id: str):
    """Delete a recording with its takes and clips.

    An idle capture session of the recording is closed first; a session
    that is still capturing blocks the delete.
    """
    active = orchestrator.get_active_session()
    if active is not None and active.recording_id == recording_id:
        if active.capturing:
            raise RecordingAlreadyActiveError()
        await orchestrator.close_session()

    async with get_session() as session:
        await RecordingRepository(session).delete_recording(recording_id)
    logger.info("Deleted recording %s", recording_id)
    return Response(status_code=204)


@router.get("/{recording_id}/takes", response_model=list[TakeRecord])
async def list_takes(recording_id: str):
    await _ensure_recording(recording_id)
    return await SqlClipStore().list_takes_for_recording(recording_id)


# ---------------------------------------------------------------------------
# Clips
# ---------------------------------------------------------------------------


@router.get("/{recording_id}/clips", response_model=list[LiveClip])
async def list_clips(recording_id: str):
    """Merged timeline: persisted clips in position order, then live ones."""
    await _ensure_recording(recording_id)
    return await _read_only_merger(recording_id).timeline(recording_id)


@router.get("/{recording_id}/export", response_model=list[DetectedClip])
async def export_clips(recording_id: str):
    """Closed clips with a known source file, ready for the renderer."""
    await _ensure_recording(recording_id)
    return await _read_only_merger(recording_id).export_clips(recording_id)


@router.delete("/{recording_id}/clips/{clip_id}", response_model=UndoResponse)
async def remove_clip(recording_id: str, clip_id: str):
    """Archive a clip; it can be brought back with ``POST .../clips/undo``."""
    session = await _session_for(recording_id)
    await session.remove_clip(clip_id)
    return UndoResponse(restored_clip_id=None, can_undo=session.archive.can_undo)


@router.post("/{recording_id}/clips/undo", response_model=UndoResponse)
async def undo_remove(recording_id: str):
    session = await _session_for(recording_id)
    restored = await session.undo_remove()
    return UndoResponse(restored_clip_id=restored, can_undo=session.archive.can_undo)


@router.put("/{recording_id}/clips/order", status_code=204)
async def reorder_clips(recording_id: str, body: ReorderClipsRequest):
    session = await _session_for(recording_id)
    await session.reorder_clips(body.clip_ids)
    return Response(status_code=204)


@router.post("/{recording_id}/redetect", response_model=list[DetectedClip])
async def redetect(recording_id: str, body: RedetectRequest | None = None):
    """Re-run offline detection on a take file with an optional threshold."""
    body = body or RedetectRequest()
    session = await _session_for(recording_id)
    return await session.redetect(take_id=body.take_id, threshold_db=body.threshold_db)
