"""
Speech module - live speech detection and clip boundary events.
"""

from .detector import (
    LoudnessSample,
    PublicSpeechState,
    SpeechDetector,
    SpeechStateKind,
    project,
    step,
)
from .watcher import ClipBoundaryWatcher, ClipEnded, ClipStarted, detect_boundary

__all__ = [
    "ClipBoundaryWatcher",
    "ClipEnded",
    "ClipStarted",
    "LoudnessSample",
    "PublicSpeechState",
    "SpeechDetector",
    "SpeechStateKind",
    "detect_boundary",
    "project",
    "step",
]
