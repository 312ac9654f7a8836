"""
SQLAlchemy-backed :class:`ClipStore`.

Each call runs in its own ``get_session()`` transaction through
``RecordingRepository``. SQLite lock contention is retried with
exponential backoff; any other database failure is surfaced as
:class:`PersistenceError`.
"""

import logging

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.core.exceptions import PersistenceError
from src.core.models import ClipRecord, TakeRecord
from src.services.storage.base import ClipStore
from src.services.storage.database import get_session
from src.services.storage.repository import RecordingRepository

logger = logging.getLogger(__name__)

_retry_locked = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    retry=retry_if_exception_type(OperationalError),
    reraise=True,
)


def _take_record(take) -> TakeRecord:
    return TakeRecord(
        id=take.id,
        recording_id=take.recording_id,
        file_path=take.file_path,
        take_number=take.take_number,
        created_at=take.created_at,
    )


def _clip_record(clip) -> ClipRecord:
    return ClipRecord(
        id=clip.id,
        recording_id=clip.recording_id,
        take_id=clip.take_id,
        source_start_time=clip.source_start_time,
        source_end_time=clip.source_end_time,
        position=clip.position,
        text=clip.text,
        archived=clip.archived,
        created_at=clip.created_at,
    )


class SqlClipStore(ClipStore):
    """Clip store persisting to the application database."""

    async def create_take(self, take_id: str, recording_id: str, take_number: int) -> None:
        try:
            await self._create_take(take_id, recording_id, take_number)
        except SQLAlchemyError as exc:
            logger.warning("Failed to create take %s: %s", take_id, exc)
            raise PersistenceError(f"Could not create take: {exc}") from exc

    @_retry_locked
    async def _create_take(self, take_id: str, recording_id: str, take_number: int) -> None:
        async with get_session() as session:
            repo = RecordingRepository(session)
            await repo.create_take(take_id, recording_id, take_number)

    async def set_take_file_path(self, take_id: str, file_path: str) -> None:
        try:
            await self._set_take_file_path(take_id, file_path)
        except SQLAlchemyError as exc:
            logger.warning("Failed to set file path of take %s: %s", take_id, exc)
            raise PersistenceError(f"Could not save take file path: {exc}") from exc

    @_retry_locked
    async def _set_take_file_path(self, take_id: str, file_path: str) -> None:
        async with get_session() as session:
            repo = RecordingRepository(session)
            await repo.update_take_file_path(take_id, file_path)

    async def archive_clip(self, clip_id: str) -> None:
        await self._set_archived(clip_id, True)

    async def restore_clip(self, clip_id: str) -> None:
        await self._set_archived(clip_id, False)

    async def _set_archived(self, clip_id: str, archived: bool) -> None:
        try:
            await self._write_archived(clip_id, archived)
        except SQLAlchemyError as exc:
            logger.warning("Failed to update archived flag of clip %s: %s", clip_id, exc)
            raise PersistenceError(f"Could not update clip: {exc}") from exc

    @_retry_locked
    async def _write_archived(self, clip_id: str, archived: bool) -> None:
        async with get_session() as session:
            repo = RecordingRepository(session)
            await repo.set_clip_archived(clip_id, archived)

    async def list_clips_for_recording(self, recording_id: str) -> list[ClipRecord]:
        try:
            async with get_session() as session:
                repo = RecordingRepository(session)
                clips = await repo.list_clips(recording_id)
                return [_clip_record(c) for c in clips]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not load clips: {exc}") from exc

    async def list_takes_for_recording(self, recording_id: str) -> list[TakeRecord]:
        try:
            async with get_session() as session:
                repo = RecordingRepository(session)
                takes = await repo.list_takes(recording_id)
                return [_take_record(t) for t in takes]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not load takes: {exc}") from exc

    async def save_clips_for_take(
        self,
        recording_id: str,
        take_id: str,
        clips: list[dict],
    ) -> None:
        try:
            await self._save_clips(recording_id, take_id, clips)
        except SQLAlchemyError as exc:
            logger.warning("Failed to save clips for take %s: %s", take_id, exc)
            raise PersistenceError(f"Could not save clips: {exc}") from exc

    @_retry_locked
    async def _save_clips(self, recording_id: str, take_id: str, clips: list[dict]) -> None:
        async with get_session() as session:
            repo = RecordingRepository(session)
            await repo.replace_clips_for_take(recording_id, take_id, clips)

    async def next_clip_position(self, recording_id: str) -> int:
        try:
            async with get_session() as session:
                repo = RecordingRepository(session)
                return await repo.next_clip_position(recording_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not read clip positions: {exc}") from exc

    async def reorder_clips(self, recording_id: str, clip_ids: list[str]) -> None:
        try:
            await self._reorder(recording_id, clip_ids)
        except SQLAlchemyError as exc:
            logger.warning("Failed to reorder clips of recording %s: %s", recording_id, exc)
            raise PersistenceError(f"Could not reorder clips: {exc}") from exc

    @_retry_locked
    async def _reorder(self, recording_id: str, clip_ids: list[str]) -> None:
        async with get_session() as session:
            repo = RecordingRepository(session)
            await repo.reorder_clips(recording_id, clip_ids)
