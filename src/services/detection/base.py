"""
Abstract base class for offline clip detectors.

A detector reads a finished take file and returns its speech segments.
The silence threshold is always passed in by the caller.
"""

from abc import ABC, abstractmethod

from src.core.models import DetectedClip


class BaseClipDetector(ABC):
    """Interface that every offline detector must implement."""

    @abstractmethod
    async def detect(
        self,
        file_path: str,
        threshold_db: int,
        start_time: float = 0.0,
    ) -> list[DetectedClip]:
        """Return the ordered speech segments of *file_path*.

        Args:
            file_path: Video or audio file of a finished take.
            threshold_db: Noise floor; quieter stretches count as silence.
            start_time: Seconds to skip at the beginning of the file.

        Returns:
            Clips with ``start_time < end_time``, in file order.

        Raises:
            DetectionError: If the file cannot be analysed.
        """
