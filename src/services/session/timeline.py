"""Working timeline: persisted clips plus the still-live ones.

Persisted clips come from the store ordered by position; only clips whose
take already has a video file are shown. Live clips of the current take
are appended by :class:`LiveClipSession`.
"""

import logging

from src.core.models import ClipRecord, DetectedClip, LiveClip, TakeRecord
from src.services.session.live_clips import LiveClipSession
from src.services.storage.base import ClipStore

logger = logging.getLogger(__name__)


def persisted_to_live(clips: list[ClipRecord], takes: list[TakeRecord]) -> list[LiveClip]:
    """Convert stored clips to timeline entries, skipping takes without a file."""
    take_paths = {take.id: take.file_path for take in takes}
    timeline = []
    for clip in clips:
        if clip.archived:
            continue
        file_path = take_paths.get(clip.take_id)
        if not file_path:
            continue
        timeline.append(
            LiveClip(
                id=clip.id,
                persisted_id=clip.id,
                take_id=clip.take_id,
                file_path=file_path,
                start_time=clip.source_start_time,
                end_time=clip.source_end_time,
            )
        )
    return timeline


def to_export_clips(timeline: list[LiveClip]) -> list[DetectedClip]:
    """Keep closed clips with a known file, in timeline order."""
    return [
        DetectedClip(input_video=clip.file_path, start_time=clip.start_time, end_time=clip.end_time)
        for clip in timeline
        if clip.end_time is not None and clip.file_path
    ]


class ClipTimelineMerger:
    """Builds the merged clip list for rendering and export.

    Args:
        store: Persistence backend holding takes and clips.
        live: The live session whose clips are appended.
    """

    def __init__(self, store: ClipStore, live: LiveClipSession) -> None:
        self._store = store
        self._live = live

    async def timeline(self, recording_id: str) -> list[LiveClip]:
        takes = await self._store.list_takes_for_recording(recording_id)
        clips = await self._store.list_clips_for_recording(recording_id)
        return self._live.merged_clips(persisted_to_live(clips, takes))

    async def export_clips(self, recording_id: str) -> list[DetectedClip]:
        clips = to_export_clips(await self.timeline(recording_id))
        logger.debug("Export list for recording %s has %d clips", recording_id, len(clips))
        return clips
