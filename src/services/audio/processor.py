"""Audio processing utilities for PCM data.

Converts raw PCM bytes to numpy arrays and measures loudness in dBFS.
"""

import numpy as np

# Keeps log10 finite on digital silence (about -200 dBFS)
_RMS_FLOOR = 1e-10


class AudioProcessor:
    """Handles PCM audio data conversion and analysis.

    Provides utilities for converting raw PCM bytes to numpy arrays and
    measuring the RMS level of a window in decibels relative to full scale.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        sample_width: int = 2,
        channels: int = 1,
    ) -> None:
        """Initialize the audio processor.

        Args:
            sample_rate: Audio sample rate in Hz (default: 16 kHz).
            sample_width: Bytes per sample (2 = 16-bit signed PCM).
            channels: Number of audio channels (1 = mono).
        """
        self.sample_rate = sample_rate
        self.sample_width = sample_width
        self.channels = channels

    @property
    def frame_size(self) -> int:
        """Bytes per frame (one sample for every channel)."""
        return self.sample_width * self.channels

    def pcm_to_ndarray(self, pcm_data: bytes) -> np.ndarray:
        """Convert raw PCM bytes (16-bit signed) to float32 numpy array.

        Args:
            pcm_data: Raw PCM bytes (16-bit, mono).

        Returns:
            Float32 numpy array normalized to [-1.0, 1.0].

        Raises:
            ValueError: If data length is not aligned to sample frame size.
        """
        if len(pcm_data) % self.frame_size != 0:
            raise ValueError(
                f"PCM data length ({len(pcm_data)}) is not aligned to frame size ({self.frame_size})"
            )
        # Convert 16-bit signed integers to float32 in [-1.0, 1.0] range
        return np.frombuffer(pcm_data, dtype=np.int16).astype(np.float32) / 32768.0

    def level_db(self, audio: np.ndarray) -> float:
        """Return the RMS level of *audio* in dBFS.

        Args:
            audio: Float32 numpy array of audio samples in [-1.0, 1.0].

        Returns:
            ``20 * log10(rms)``; an empty window reads as the floor value.
        """
        if len(audio) == 0:
            return float(20 * np.log10(_RMS_FLOOR))
        rms = np.sqrt(np.mean(audio.astype(np.float64) ** 2))
        return float(20 * np.log10(rms + _RMS_FLOOR))
