"""
Session module - takes, live clips, undo and the merged timeline.
"""

from .archive import UndoableArchiveStack
from .live_clips import LiveClipSession, merge_clips
from .takes import TakeLifecycleManager
from .timeline import ClipTimelineMerger

__all__ = [
    "ClipTimelineMerger",
    "LiveClipSession",
    "TakeLifecycleManager",
    "UndoableArchiveStack",
    "merge_clips",
]
