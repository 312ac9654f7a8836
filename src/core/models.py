"""
Pydantic v2 models shared by the store, the session layer and the API.

Recording / Take / Clip mirror the persisted rows; LiveClip is the
in-memory clip shape used for the merged timeline; DetectedClip is the
re-detection and export entry.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class RecordingCreate(BaseModel):
    """POST /recordings request body."""

    name: str = Field(default="Untitled recording", max_length=255)


class RecordingRename(BaseModel):
    """PATCH /recordings/{id} request body."""

    name: str = Field(max_length=255)


class RecordingResponse(BaseModel):
    """Standard recording representation returned by the API."""

    id: str
    name: str
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Takes & clips
# ---------------------------------------------------------------------------


class TakeRecord(BaseModel):
    """A persisted take: one continuous recording pass."""

    id: str
    recording_id: str
    file_path: str | None = None
    take_number: int
    created_at: datetime


class ClipRecord(BaseModel):
    """A persisted clip row."""

    id: str
    recording_id: str
    take_id: str
    source_start_time: float
    source_end_time: float
    position: int
    text: str | None = None
    archived: bool = False
    created_at: datetime


class LiveClip(BaseModel):
    """A clip as shown on the working timeline.

    ``persisted_id`` is set for clips that came from the store and is
    ``None`` for clips detected in memory during the current take.
    """

    id: str
    persisted_id: str | None = None
    take_id: str
    file_path: str = ""
    start_time: float
    end_time: float | None = None
    archived: bool = False


class DetectedClip(BaseModel):
    """A speech segment of a source video (re-detection output, export input)."""

    input_video: str
    start_time: float
    end_time: float


class ReorderClipsRequest(BaseModel):
    """PUT /recordings/{id}/clips/order request body."""

    clip_ids: list[str]


class RedetectRequest(BaseModel):
    """POST /recordings/{id}/redetect request body."""

    take_id: str | None = None
    threshold_db: int | None = None


class UndoResponse(BaseModel):
    """Result of an undo-remove request."""

    restored_clip_id: str | None = None
    can_undo: bool = False


# ---------------------------------------------------------------------------
# Capture session
# ---------------------------------------------------------------------------


class SessionOpenRequest(BaseModel):
    """POST /session/open request body."""

    recording_id: str


class SessionStartRequest(BaseModel):
    """POST /session/start request body."""

    started_at_ms: float | None = None


class LoudnessSamplePayload(BaseModel):
    """One loudness sample from the live audio path."""

    timestamp: float
    level_db: float


class SamplesRequest(BaseModel):
    """POST /session/samples request body."""

    samples: list[LoudnessSamplePayload] = Field(default_factory=list)


class FilePathRequest(BaseModel):
    """POST /session/file-path request body."""

    file_path: str


class SessionStopRequest(BaseModel):
    """POST /session/stop request body."""

    file_path: str | None = None


class SessionStateResponse(BaseModel):
    """Snapshot of the open capture session."""

    recording_id: str
    capturing: bool
    current_take_id: str | None = None
    speech_state: str
    clip_id: str | None = None
    live_clips: list[LiveClip] = Field(default_factory=list)
    can_undo: bool = False


class SamplesResponse(BaseModel):
    """Events raised while processing a batch of samples."""

    events: list[dict] = Field(default_factory=list)
    speech_state: str


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


class WebSocketMessageType(StrEnum):
    """Discriminator for messages sent over the capture WebSocket."""

    connected = "connected"
    speech_state = "speech_state"
    clip_started = "clip_started"
    clip_ended = "clip_ended"
    clips_detected = "clips_detected"
    error = "error"


class WebSocketMessage(BaseModel):
    """JSON message sent from server to client over WebSocket."""

    type: WebSocketMessageType
    data: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Error
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error envelope returned by the API."""

    detail: str
    code: str
    timestamp: str
