"""In-memory clips of the take being recorded.

Clips detected live are kept here until the backend's re-detection for
the take has been persisted and reloaded. The list is append-only apart
from closing (or dropping) the last open clip, with an id index for
membership tests.
"""

import logging
from collections.abc import Iterable

from src.core.models import LiveClip
from src.services.session.takes import TakeLifecycleManager

logger = logging.getLogger(__name__)


def merge_clips(persisted: Iterable[LiveClip], live: Iterable[LiveClip]) -> list[LiveClip]:
    """Return *persisted* followed by the live clips not already represented.

    A live clip is dropped when it carries a persisted id, when its id is
    one of the persisted ids, or when the same id was already emitted.
    """
    merged = list(persisted)
    seen = {clip.id for clip in merged}
    for clip in live:
        if clip.persisted_id is not None or clip.id in seen:
            continue
        seen.add(clip.id)
        merged.append(clip)
    return merged


class LiveClipSession:
    """Live clip list guarded by the current take.

    Args:
        takes: The take lifecycle this session follows.
    """

    def __init__(self, takes: TakeLifecycleManager) -> None:
        self._takes = takes
        self._clips: list[LiveClip] = []
        self._index: dict[str, int] = {}

    @property
    def current_take_id(self) -> str | None:
        return self._takes.current_take_id

    @property
    def clips(self) -> list[LiveClip]:
        """Snapshot of the live clips in detection order."""
        return [clip.model_copy() for clip in self._clips]

    @property
    def open_clip(self) -> LiveClip | None:
        """The last clip if it has no end yet."""
        if self._clips and self._clips[-1].end_time is None:
            return self._clips[-1]
        return None

    def __len__(self) -> int:
        return len(self._clips)

    def __contains__(self, clip_id: object) -> bool:
        return clip_id in self._index

    # ------------------------------------------------------------------
    # Take lifecycle
    # ------------------------------------------------------------------

    async def start_new_take(self, recording_id: str, take_number: int) -> str:
        """Create a take, make it current and start an empty clip list.

        Live clips of the previous take are discarded. A file path that
        arrived before the take existed is applied once the take is created;
        if storing it fails the error propagates with the new take current
        and the path stays parked for this take only.
        """
        take_id = await self._takes.create_take(recording_id, take_number)
        self.clear_live_clips()
        await self._takes.flush_pending_path()
        return take_id

    async def on_take_file_path_received(self, file_path: str) -> None:
        """Attach the recorder's file path to the current take.

        Buffered when no take exists yet. Live clips of the take pick up
        the path only after the store accepted it.
        """
        take_id = await self._takes.apply_file_path(file_path)
        if take_id is None:
            return
        for clip in self._clips:
            if clip.take_id == take_id:
                clip.file_path = file_path

    # ------------------------------------------------------------------
    # Live clips
    # ------------------------------------------------------------------

    def add_live_clip(self, clip_id: str, start_time: float) -> LiveClip | None:
        """Append an open clip for the current take.

        Returns ``None`` (and changes nothing) without a current take, when
        a clip is still open, or when *clip_id* is already known.
        """
        take_id = self._takes.current_take_id
        if take_id is None:
            logger.debug("Ignoring clip %s: no current take", clip_id)
            return None
        if self.open_clip is not None or clip_id in self._index:
            logger.debug("Ignoring clip %s: a clip is already open or id is known", clip_id)
            return None

        clip = LiveClip(
            id=clip_id,
            take_id=take_id,
            file_path=self._takes.current_file_path or "",
            start_time=start_time,
        )
        self._index[clip_id] = len(self._clips)
        self._clips.append(clip)
        return clip

    def close_live_clip(self, end_time: float) -> LiveClip | None:
        """Set the end of the open clip; a no-op when nothing is open.

        An end that is not after the start cannot form a clip: the open
        clip is dropped so the next utterance can start a new one.
        """
        clip = self.open_clip
        if clip is None:
            return None
        if end_time <= clip.start_time:
            logger.warning(
                "Dropping clip %s: end %.3f is not after start %.3f", clip.id, end_time, clip.start_time
            )
            self._clips.pop()
            del self._index[clip.id]
            return None
        clip.end_time = end_time
        return clip

    def get(self, clip_id: str) -> LiveClip | None:
        idx = self._index.get(clip_id)
        return None if idx is None else self._clips[idx]

    def merged_clips(self, persisted: Iterable[LiveClip]) -> list[LiveClip]:
        """Persisted clips followed by the still-unpersisted live ones."""
        return merge_clips(persisted, self._clips)

    def clear_live_clips(self) -> None:
        self._clips = []
        self._index = {}
