"""
ffmpeg ``silencedetect`` based clip detector.

Runs ffmpeg over the take file with the ``silencedetect`` audio filter,
collects the reported silence periods from stderr and turns the gaps
between them into speech clips. The total duration comes from pydub's
ffprobe wrapper.
"""

import asyncio
import logging
import re
from dataclasses import dataclass

from pydub.utils import mediainfo

from src.core.config import get_settings
from src.core.exceptions import DetectionError
from src.core.models import DetectedClip
from src.services.detection.base import BaseClipDetector

logger = logging.getLogger(__name__)

_SILENCE_END_RE = re.compile(
    r"silence_end:\s*(-?\d+(?:\.\d+)?)\s*\|\s*silence_duration:\s*(-?\d+(?:\.\d+)?)"
)


@dataclass(frozen=True)
class SilencePeriod:
    """A silent stretch, in seconds on the file's timeline."""

    end: float
    duration: float

    @property
    def start(self) -> float:
        return self.end - self.duration


def parse_silence_periods(stderr: str, offset: float = 0.0) -> list[SilencePeriod]:
    """Extract completed silence periods from ffmpeg's stderr.

    Only ``silence_end`` lines are used since they carry both the end and
    the duration. *offset* is added to every end (the ``-ss`` seek).
    """
    return [
        SilencePeriod(end=float(end) + offset, duration=float(duration))
        for end, duration in _SILENCE_END_RE.findall(stderr)
    ]


def silences_to_clips(
    periods: list[SilencePeriod],
    file_path: str,
    total_duration: float,
    start: float = 0.0,
    end_padding: float = 0.3,
    min_clip_length: float = 1.0,
) -> list[DetectedClip]:
    """Turn silence periods into the speech segments between them.

    Segments: before the first silence, between consecutive silences
    (padded at the end by *end_padding*), and after the last silence.
    Ends are clamped to *total_duration* when it is known; segments
    shorter than *min_clip_length* are dropped.
    """
    clips: list[DetectedClip] = []

    def add(clip_start: float, clip_end: float, pad: bool) -> None:
        final_end = clip_end + end_padding if pad else clip_end
        if total_duration > 0:
            final_end = min(final_end, total_duration)
        if clip_start < final_end and final_end - clip_start >= min_clip_length:
            clips.append(DetectedClip(input_video=file_path, start_time=clip_start, end_time=final_end))
        else:
            logger.debug("Skipping short segment %.2f -> %.2f", clip_start, final_end)

    if not periods:
        if total_duration > min_clip_length:
            add(start, total_duration, pad=False)
        return clips

    if periods[0].start - start > min_clip_length:
        add(start, periods[0].start, pad=False)

    for current, following in zip(periods, periods[1:]):
        add(current.end, following.start, pad=True)

    last = periods[-1]
    if total_duration - last.end > min_clip_length:
        add(last.end, total_duration, pad=False)

    return clips


async def media_duration(file_path: str) -> float:
    """Return the media duration in seconds, or 0.0 if it cannot be read."""
    try:
        info = await asyncio.to_thread(mediainfo, file_path)
        return float(info.get("duration", 0.0) or 0.0)
    except (OSError, ValueError) as exc:
        logger.warning("Could not read duration of %s: %s", file_path, exc)
        return 0.0


class FFmpegSilenceDetector(BaseClipDetector):
    """Offline detector backed by the ffmpeg CLI."""

    def __init__(
        self,
        ffmpeg_binary: str | None = None,
        min_silence_duration: float | None = None,
        end_padding: float | None = None,
        min_clip_length: float | None = None,
    ) -> None:
        """Initialize the detector.

        Args:
            ffmpeg_binary: ffmpeg executable (falls back to settings).
            min_silence_duration: Seconds of quiet that count as silence.
            end_padding: Seconds added to clips that end at a silence.
            min_clip_length: Shortest clip kept, in seconds.
        """
        settings = get_settings()
        self._ffmpeg = ffmpeg_binary or settings.ffmpeg_binary
        self._min_silence = (
            min_silence_duration if min_silence_duration is not None else settings.min_silence_duration
        )
        self._end_padding = end_padding if end_padding is not None else settings.clip_end_padding
        self._min_clip_length = (
            min_clip_length if min_clip_length is not None else settings.min_clip_length
        )

    def build_command(self, file_path: str, threshold_db: int, start_time: float) -> list[str]:
        silence_filter = f"silencedetect=n={threshold_db}dB:d={self._min_silence}"
        return [
            self._ffmpeg,
            "-hide_banner",
            "-ss",
            str(start_time),
            "-i",
            file_path,
            "-af",
            silence_filter,
            "-f",
            "null",
            "-",
        ]

    async def _run_ffmpeg(self, cmd: list[str]) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise DetectionError(f"ffmpeg not found: {self._ffmpeg}") from exc
        _, stderr = await proc.communicate()
        output = stderr.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            tail = output.strip().splitlines()[-1:] or [""]
            raise DetectionError(f"ffmpeg exited with {proc.returncode}: {tail[0]}")
        return output

    async def detect(
        self,
        file_path: str,
        threshold_db: int,
        start_time: float = 0.0,
    ) -> list[DetectedClip]:
        logger.info("Detecting clips in %s (threshold %sdB, from %.2fs)", file_path, threshold_db, start_time)
        output = await self._run_ffmpeg(self.build_command(file_path, threshold_db, start_time))
        periods = parse_silence_periods(output, offset=start_time)
        total_duration = await media_duration(file_path)

        clips = silences_to_clips(
            periods,
            file_path=file_path,
            total_duration=total_duration,
            start=start_time,
            end_padding=self._end_padding,
            min_clip_length=self._min_clip_length,
        )
        logger.info(
            "Detected %d clips from %d silence periods in %s (%.1fs)",
            len(clips),
            len(periods),
            file_path,
            total_duration,
        )
        return clips
