"""
LiveCut exception hierarchy.

All application-specific exceptions inherit from LiveCutError,
enabling centralized error handling in the API middleware layer.
"""

from datetime import UTC, datetime


class LiveCutError(Exception):
    """Base exception for all LiveCut errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "LIVECUT_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


class RecordingNotFoundError(LiveCutError):
    """Raised when a recording ID does not exist."""

    def __init__(self, recording_id: str) -> None:
        super().__init__(
            detail=f"Recording not found: {recording_id}",
            code="RECORDING_NOT_FOUND",
            status_code=404,
        )


class TakeNotFoundError(LiveCutError):
    """Raised when a take ID does not exist."""

    def __init__(self, take_id: str) -> None:
        super().__init__(
            detail=f"Take not found: {take_id}",
            code="TAKE_NOT_FOUND",
            status_code=404,
        )


class ClipNotFoundError(LiveCutError):
    """Raised when a clip ID does not exist."""

    def __init__(self, clip_id: str) -> None:
        super().__init__(
            detail=f"Clip not found: {clip_id}",
            code="CLIP_NOT_FOUND",
            status_code=404,
        )


class RecordingAlreadyActiveError(LiveCutError):
    """Raised when trying to open a recording while another one is capturing."""

    def __init__(self) -> None:
        super().__init__(
            detail="Another recording is currently capturing",
            code="RECORDING_ALREADY_ACTIVE",
            status_code=409,
        )


class NoActiveSessionError(LiveCutError):
    """Raised when a session operation is requested with no session open."""

    def __init__(self) -> None:
        super().__init__(
            detail="No capture session is open",
            code="NO_ACTIVE_SESSION",
            status_code=409,
        )


class NoCurrentTakeError(LiveCutError):
    """Raised when an operation needs a current take and there is none."""

    def __init__(self, detail: str = "No take is currently active") -> None:
        super().__init__(
            detail=detail,
            code="NO_CURRENT_TAKE",
            status_code=409,
        )


class PersistenceError(LiveCutError):
    """Raised when the clip store fails to apply a change."""

    def __init__(self, detail: str = "Persistence failed") -> None:
        super().__init__(
            detail=detail,
            code="PERSISTENCE_ERROR",
            status_code=503,
        )


class DetectionError(LiveCutError):
    """Raised when offline clip re-detection fails."""

    def __init__(self, detail: str = "Clip detection failed") -> None:
        super().__init__(
            detail=detail,
            code="DETECTION_ERROR",
            status_code=500,
        )
