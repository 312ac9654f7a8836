"""
CRUD repository for the LiveCut tables.

``RecordingRepository`` receives an ``AsyncSession`` and provides all
data-access methods.  It calls ``flush()`` rather than ``commit()`` so
that transaction boundaries are controlled by the caller (typically
:func:`get_session`).
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ClipNotFoundError, RecordingNotFoundError, TakeNotFoundError
from src.services.storage.models_db import Clip, Recording, Take

logger = logging.getLogger(__name__)


class RecordingRepository:
    """Data-access layer for the LiveCut schema.

    All methods use ``flush()`` instead of ``commit()`` so transaction
    boundaries are controlled by the caller (typically ``get_session()``
    context manager which commits on clean exit).

    Args:
        session: An active SQLAlchemy ``AsyncSession``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Recordings
    # ------------------------------------------------------------------

    async def create_recording(
        self,
        name: str = "Untitled recording",
        recording_id: str | None = None,
    ) -> Recording:
        """Create and return a new recording."""
        recording = Recording(name=name)
        if recording_id is not None:
            recording.id = recording_id
        self._session.add(recording)
        await self._session.flush()
        return recording

    async def get_recording(self, recording_id: str) -> Recording:
        """Return a recording by ID or raise :class:`RecordingNotFoundError`."""
        recording = await self._session.get(Recording, recording_id)
        if recording is None:
            raise RecordingNotFoundError(recording_id)
        return recording

    async def list_recordings(self, limit: int = 50, offset: int = 0) -> list[Recording]:
        """Return recordings, newest first."""
        stmt = (
            select(Recording)
            .order_by(Recording.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def rename_recording(self, recording_id: str, name: str) -> Recording:
        """Rename a recording and bump its *updated_at*."""
        recording = await self.get_recording(recording_id)
        recording.name = name
        recording.updated_at = datetime.now(UTC)
        await self._session.flush()
        return recording

    async def touch_recording(self, recording_id: str) -> None:
        """Bump *updated_at* without loading the row."""
        await self._session.execute(
            update(Recording)
            .where(Recording.id == recording_id)
            .values(updated_at=datetime.now(UTC))
        )

    async def delete_recording(self, recording_id: str) -> None:
        """Delete a recording together with its takes and clips."""
        await self.get_recording(recording_id)
        await self._session.execute(delete(Clip).where(Clip.recording_id == recording_id))
        await self._session.execute(delete(Take).where(Take.recording_id == recording_id))
        await self._session.execute(delete(Recording).where(Recording.id == recording_id))
        await self._session.flush()

    # ------------------------------------------------------------------
    # Takes
    # ------------------------------------------------------------------

    async def create_take(
        self,
        take_id: str,
        recording_id: str,
        take_number: int,
        file_path: str | None = None,
    ) -> Take:
        """Create and return a take for an existing recording."""
        await self.get_recording(recording_id)
        take = Take(
            id=take_id,
            recording_id=recording_id,
            take_number=take_number,
            file_path=file_path,
        )
        self._session.add(take)
        await self._session.flush()
        return take

    async def get_take(self, take_id: str) -> Take:
        """Return a take by ID or raise :class:`TakeNotFoundError`."""
        take = await self._session.get(Take, take_id)
        if take is None:
            raise TakeNotFoundError(take_id)
        return take

    async def list_takes(self, recording_id: str) -> list[Take]:
        """Return takes for a recording ordered by *take_number*."""
        stmt = (
            select(Take)
            .where(Take.recording_id == recording_id)
            .order_by(Take.take_number)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_take_file_path(self, take_id: str, file_path: str) -> Take:
        """Set the backing video file of a take."""
        take = await self.get_take(take_id)
        take.file_path = file_path
        await self._session.flush()
        return take

    async def delete_take(self, take_id: str) -> None:
        """Delete a take and its clips."""
        await self.get_take(take_id)
        await self._session.execute(delete(Clip).where(Clip.take_id == take_id))
        await self._session.execute(delete(Take).where(Take.id == take_id))
        await self._session.flush()

    # ------------------------------------------------------------------
    # Clips
    # ------------------------------------------------------------------

    async def replace_clips_for_take(
        self,
        recording_id: str,
        take_id: str,
        clips: list[dict],
    ) -> list[Clip]:
        """Replace the non-archived clips of a take.

        Archived clips are left alone so an undo can still restore them.
        Each entry of *clips* carries ``id``, ``start_time``, ``end_time``
        and ``position``.
        """
        await self.get_take(take_id)
        await self._session.execute(
            delete(Clip).where(Clip.take_id == take_id, Clip.archived.is_(False))
        )
        created = []
        for entry in clips:
            clip = Clip(
                id=entry["id"],
                recording_id=recording_id,
                take_id=take_id,
                source_start_time=entry["start_time"],
                source_end_time=entry["end_time"],
                position=entry["position"],
            )
            self._session.add(clip)
            created.append(clip)
        await self.touch_recording(recording_id)
        await self._session.flush()
        logger.debug("Stored %d clips for take %s", len(created), take_id)
        return created

    async def list_clips(self, recording_id: str, include_archived: bool = False) -> list[Clip]:
        """Return clips for a recording ordered by *position*."""
        stmt = select(Clip).where(Clip.recording_id == recording_id).order_by(Clip.position)
        if not include_archived:
            stmt = stmt.where(Clip.archived.is_(False))
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_clip(self, clip_id: str) -> Clip:
        """Return a clip by ID or raise :class:`ClipNotFoundError`."""
        clip = await self._session.get(Clip, clip_id)
        if clip is None:
            raise ClipNotFoundError(clip_id)
        return clip

    async def set_clip_archived(self, clip_id: str, archived: bool) -> Clip:
        """Soft-delete (``archived=True``) or restore a clip."""
        clip = await self.get_clip(clip_id)
        clip.archived = archived
        await self._session.flush()
        return clip

    async def reorder_clips(self, recording_id: str, clip_ids: list[str]) -> None:
        """Assign positions ``0..n-1`` following the order of *clip_ids*."""
        for position, clip_id in enumerate(clip_ids):
            await self._session.execute(
                update(Clip)
                .where(Clip.id == clip_id, Clip.recording_id == recording_id)
                .values(position=position)
            )
        await self.touch_recording(recording_id)
        await self._session.flush()

    async def next_clip_position(self, recording_id: str) -> int:
        """Return the position after the last non-archived clip (0 when empty)."""
        stmt = select(func.max(Clip.position)).where(
            Clip.recording_id == recording_id,
            Clip.archived.is_(False),
        )
        result = await self._session.execute(stmt)
        max_position = result.scalar_one_or_none()
        return 0 if max_position is None else max_position + 1
