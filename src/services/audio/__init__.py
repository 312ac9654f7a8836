"""
Audio module - PCM conversion and loudness metering.
"""

from .processor import AudioProcessor
from .recorder import LevelMeter

__all__ = ["AudioProcessor", "LevelMeter"]
