"""WebSocket endpoint for live clip capture.

The client streams the live audio path of the recorder over one
connection, either as raw PCM bytes (16-bit, 16 kHz, mono) that are
metered server-side, or as JSON text frames carrying ready-made loudness
samples. Control frames mark take boundaries and report the recorder's
output file. The server pushes speech state changes and clip boundaries
back as JSON ``WebSocketMessage`` objects.

Pipeline: PCM -> LevelMeter -> LoudnessSample -> session queue -> events
"""

import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from src.core.exceptions import LiveCutError
from src.core.models import WebSocketMessage, WebSocketMessageType
from src.services import orchestrator
from src.services.audio import LevelMeter
from src.services.orchestrator import CaptureSession
from src.services.speech import LoudnessSample
from src.services.storage.database import get_session
from src.services.storage.repository import RecordingRepository

logger = logging.getLogger(__name__)

router = APIRouter()


async def _send(websocket: WebSocket, type_: WebSocketMessageType, data: dict) -> None:
    msg = WebSocketMessage(type=type_, data=data)
    await websocket.send_json(msg.model_dump(mode="json"))


async def _handle_control(
    session: CaptureSession,
    meter: LevelMeter,
    frame: dict,
) -> None:
    """Apply one JSON text frame from the client.

    Frame types:
        ``start``: a take began (optional ``started_at_ms``).
        ``samples``: list of ``{"timestamp", "level_db"}`` readings.
        ``file_path``: the recorder's output file for the current take.
        ``stop``: the take ended (optional ``file_path``).
    """
    if not isinstance(frame, dict):
        raise ValueError("Control frames must be JSON objects")
    kind = frame.get("type")
    if kind == "start":
        started_at_ms = frame.get("started_at_ms")
        if started_at_ms is not None:
            started_at_ms = float(started_at_ms)
        await session.drain()
        meter.reset()
        await session.recording_started(started_at_ms=started_at_ms)
    elif kind == "samples":
        for raw in frame.get("samples", []):
            session.enqueue_sample(
                LoudnessSample(timestamp_ms=float(raw["timestamp"]), level_db=float(raw["level_db"]))
            )
    elif kind == "file_path":
        session.enqueue_file_path(str(frame["file_path"]))
    elif kind == "stop":
        await session.recording_stopped(file_path=frame.get("file_path"))
    else:
        raise ValueError(f"Unknown frame type: {kind!r}")


@router.websocket("/ws/capture")
async def capture_ws(
    websocket: WebSocket,
    recording_id: str = Query(...),
) -> None:
    """Real-time speech clip capture for one recording.

    Query params:
        recording_id: ID of the recording to capture takes into.

    Protocol:
        - Client sends: raw PCM bytes, or JSON control frames.
        - Server sends: JSON ``WebSocketMessage`` objects.

    On disconnect the queued events are drained and the session closed.
    """
    await websocket.accept()
    logger.info("WebSocket connected for recording_id=%s", recording_id)

    try:
        async with get_session() as db:
            await RecordingRepository(db).get_recording(recording_id)
    except LiveCutError as exc:
        await _send(websocket, WebSocketMessageType.error, {"detail": exc.detail, "code": exc.code})
        await websocket.close(code=1008)
        return

    async def _notify(event: dict) -> None:
        """Forward session events to the client."""
        data = dict(event)
        type_ = WebSocketMessageType(data.pop("type"))
        await _send(websocket, type_, data)

    try:
        session = await orchestrator.open_session(recording_id, notify=_notify)
    except LiveCutError as exc:
        await _send(websocket, WebSocketMessageType.error, {"detail": exc.detail, "code": exc.code})
        await websocket.close(code=1008)
        return

    await _send(websocket, WebSocketMessageType.connected, {"recording_id": recording_id})
    meter = LevelMeter()

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if message.get("bytes") is not None:
                for sample in meter.add_bytes(message["bytes"]):
                    session.enqueue_sample(sample)
                continue
            try:
                await _handle_control(session, meter, json.loads(message.get("text") or "{}"))
            except LiveCutError as exc:
                await _send(
                    websocket, WebSocketMessageType.error, {"detail": exc.detail, "code": exc.code}
                )
            except (ValueError, KeyError, TypeError) as exc:
                await _send(
                    websocket,
                    WebSocketMessageType.error,
                    {"detail": f"Malformed frame: {exc}", "code": "BAD_FRAME"},
                )
    except WebSocketDisconnect:
        pass
    finally:
        logger.info("WebSocket disconnected for recording_id=%s", recording_id)
        session.notify = orchestrator.discard_events
        if orchestrator.get_active_session() is session:
            await orchestrator.close_session()
