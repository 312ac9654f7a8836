"""Take lifecycle: which take is current and where its video file lives.

Take creation (a store write) and the recorder reporting the take's file
path complete independently and in either order. A path that arrives
while no take is current is parked in a single pending slot and applied
right after the next take is created.

Starting a take drops the previous one before the store write, so a path
reported during the write waits for the new take. Once a take is created
the parked path belongs to that take alone: if storing it fails it stays
parked for a retry against the same take and is discarded when another
take starts.
"""

import logging
import uuid

from src.services.storage.base import ClipStore

logger = logging.getLogger(__name__)


class TakeLifecycleManager:
    """Owns the current take id and the pending file-path slot.

    Args:
        store: Persistence backend for takes.
    """

    def __init__(self, store: ClipStore) -> None:
        self._store = store
        self._current_take_id: str | None = None
        self._current_file_path: str | None = None
        self._pending_file_path: str | None = None
        # Take that claimed the pending path; None while it waits for a take
        self._pending_take_id: str | None = None

    @property
    def current_take_id(self) -> str | None:
        return self._current_take_id

    @property
    def current_file_path(self) -> str | None:
        """Path stored for the current take, once the store accepted it."""
        return self._current_file_path

    @property
    def pending_file_path(self) -> str | None:
        return self._pending_file_path

    def _drop_claimed_path(self, take_id: str | None = None) -> None:
        if self._pending_take_id is None:
            return
        if take_id is not None and self._pending_take_id != take_id:
            return
        logger.warning(
            "Discarding file path %s that was never stored for take %s",
            self._pending_file_path,
            self._pending_take_id,
        )
        self._pending_file_path = None
        self._pending_take_id = None

    async def create_take(self, recording_id: str, take_number: int) -> str:
        """Create a take and make it current.

        The previous take stops being current before the store is called.
        When the create fails the error is re-raised with no current take,
        and a path that was waiting for a take keeps waiting.

        Returns:
            The new take id.
        """
        take_id = str(uuid.uuid4())
        self._current_take_id = None
        self._current_file_path = None
        self._drop_claimed_path()
        try:
            await self._store.create_take(take_id, recording_id, take_number)
        except Exception:
            logger.warning("Could not create take #%s for recording %s", take_number, recording_id)
            raise

        self._current_take_id = take_id
        if self._pending_file_path is not None:
            self._pending_take_id = take_id
        logger.info("Started take %s (#%s) for recording %s", take_id, take_number, recording_id)
        return take_id

    async def flush_pending_path(self) -> str | None:
        """Store the parked file path against the take that claimed it.

        The slot is only cleared once the store accepted the path.

        Returns:
            The path that was applied, or ``None`` if nothing was pending.
        """
        take_id = self._current_take_id
        pending = self._pending_file_path
        if not pending or take_id is None or self._pending_take_id != take_id:
            return None
        await self._store.set_take_file_path(take_id, pending)
        if self._pending_file_path != pending or self._pending_take_id != take_id:
            # A newer report for this take was stored meanwhile
            return pending
        self._pending_file_path = None
        self._pending_take_id = None
        if self._current_take_id == take_id:
            self._current_file_path = pending
        logger.info("Applied buffered file path to take %s", take_id)
        return pending

    async def apply_file_path(self, file_path: str) -> str | None:
        """Persist *file_path* for the current take, or buffer it.

        Returns:
            The take id the path was stored against, or ``None`` when it
            was buffered for the next take.
        """
        take_id = self._current_take_id
        if take_id is None:
            self._pending_file_path = file_path
            self._pending_take_id = None
            logger.debug("No current take yet; buffering file path %s", file_path)
            return None

        await self._store.set_take_file_path(take_id, file_path)
        if self._pending_take_id == take_id:
            # A newer report for the same take supersedes the parked one
            self._pending_file_path = None
            self._pending_take_id = None
        if self._current_take_id == take_id:
            self._current_file_path = file_path
        return take_id

    def end_take(self) -> None:
        """Release the current take; a path it never stored is discarded."""
        self._drop_claimed_path(self._current_take_id)
        self._current_take_id = None
        self._current_file_path = None
