"""Loudness metering for streamed PCM audio.

Accumulates incoming PCM bytes and emits one loudness sample per
fixed-size analysis window, timestamped on the stream's own clock.
"""

from src.services.audio.processor import AudioProcessor
from src.services.speech.detector import LoudnessSample


class LevelMeter:
    """Turns a PCM byte stream into ``LoudnessSample`` readings.

    The timestamp of a sample is the stream time at the end of its
    window, offset by ``start_ms``. The default 25 ms window gives 40
    readings per second.
    """

    def __init__(
        self,
        window_ms: float = 25.0,
        sample_rate: int = 16000,
        sample_width: int = 2,
        channels: int = 1,
        start_ms: float = 0.0,
    ) -> None:
        self._window_ms = window_ms
        self._processor = AudioProcessor(sample_rate, sample_width, channels)
        self._buffer = bytearray()
        self._start_ms = start_ms
        self._consumed_bytes = 0

    @property
    def window_size_bytes(self) -> int:
        """Number of bytes analysed per reading (whole frames only)."""
        frames = int(self._processor.sample_rate * self._window_ms / 1000)
        return max(frames, 1) * self._processor.frame_size

    @property
    def elapsed_ms(self) -> float:
        """Stream time covered by the windows measured so far."""
        bytes_per_ms = self._processor.sample_rate * self._processor.frame_size / 1000
        return self._start_ms + self._consumed_bytes / bytes_per_ms

    def add_bytes(self, data: bytes) -> list[LoudnessSample]:
        """Buffer *data* and return a sample for every complete window."""
        self._buffer.extend(data)
        samples = []
        size = self.window_size_bytes
        while len(self._buffer) >= size:
            window = bytes(self._buffer[:size])
            del self._buffer[:size]
            self._consumed_bytes += size
            level = self._processor.level_db(self._processor.pcm_to_ndarray(window))
            samples.append(LoudnessSample(timestamp_ms=self.elapsed_ms, level_db=level))
        return samples

    def reset(self, start_ms: float = 0.0) -> None:
        """Drop buffered audio and restart the stream clock."""
        self._buffer.clear()
        self._consumed_bytes = 0
        self._start_ms = start_ms
