"""
Abstract base class for the clip persistence store.

The session layer only talks to this interface, so the SQL store can be
swapped (or mocked in tests) without touching detection or take logic.
Every method may raise; callers must leave their in-memory state as it
was when a call fails.
"""

from abc import ABC, abstractmethod

from src.core.models import ClipRecord, TakeRecord


class ClipStore(ABC):
    """Interface that every clip store must implement."""

    @abstractmethod
    async def create_take(self, take_id: str, recording_id: str, take_number: int) -> None:
        """Persist a new take with no file path yet."""

    @abstractmethod
    async def set_take_file_path(self, take_id: str, file_path: str) -> None:
        """Record the video file backing a take."""

    @abstractmethod
    async def archive_clip(self, clip_id: str) -> None:
        """Soft-delete a clip."""

    @abstractmethod
    async def restore_clip(self, clip_id: str) -> None:
        """Undo a soft-delete."""

    @abstractmethod
    async def list_clips_for_recording(self, recording_id: str) -> list[ClipRecord]:
        """Return non-archived clips ordered by position."""

    @abstractmethod
    async def list_takes_for_recording(self, recording_id: str) -> list[TakeRecord]:
        """Return takes ordered by take number."""

    @abstractmethod
    async def save_clips_for_take(
        self,
        recording_id: str,
        take_id: str,
        clips: list[dict],
    ) -> None:
        """Replace the non-archived clips of a take.

        Args:
            recording_id: Recording the take belongs to.
            take_id: Take whose clips are replaced.
            clips: Dicts with ``id``, ``start_time``, ``end_time``, ``position``.
        """

    @abstractmethod
    async def next_clip_position(self, recording_id: str) -> int:
        """Return the first free timeline position of a recording."""

    @abstractmethod
    async def reorder_clips(self, recording_id: str, clip_ids: list[str]) -> None:
        """Rewrite clip positions to follow *clip_ids*."""
