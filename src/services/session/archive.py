"""Single-step undo for clip removals.

Removing a clip soft-deletes it in the store and pushes its id; undo
restores the most recently removed clip. The stack lives in memory for
the lifetime of one session and is never persisted.
"""

import logging

from src.services.storage.base import ClipStore

logger = logging.getLogger(__name__)


class UndoableArchiveStack:
    """LIFO of archived clip ids.

    Args:
        store: Persistence backend that archives and restores clips.
    """

    def __init__(self, store: ClipStore) -> None:
        self._store = store
        self._stack: list[str] = []

    def __len__(self) -> int:
        return len(self._stack)

    @property
    def can_undo(self) -> bool:
        return bool(self._stack)

    def peek(self) -> str | None:
        """Return the id the next undo would restore."""
        return self._stack[-1] if self._stack else None

    async def remove(self, clip_id: str) -> None:
        """Archive *clip_id* and remember it for undo.

        Nothing is pushed when the store rejects the archive.
        """
        await self._store.archive_clip(clip_id)
        self._stack.append(clip_id)
        logger.info("Archived clip %s (undo depth %d)", clip_id, len(self._stack))

    async def undo(self) -> str | None:
        """Restore the most recently archived clip.

        The id is popped only after the store confirmed the restore, so a
        failed restore can be retried.

        Returns:
            The restored clip id, or ``None`` when there is nothing to undo.
        """
        clip_id = self.peek()
        if clip_id is None:
            return None
        await self._store.restore_clip(clip_id)
        self._stack.pop()
        logger.info("Restored clip %s (undo depth %d)", clip_id, len(self._stack))
        return clip_id

    def clear(self) -> None:
        self._stack.clear()
