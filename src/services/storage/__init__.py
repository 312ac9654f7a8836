"""
Storage module - Database access and the clip store.
"""

from src.services.storage.base import ClipStore
from src.services.storage.database import (
    Base,
    close_db,
    get_engine,
    get_session,
    init_db,
    reset_engine,
)
from src.services.storage.models_db import Clip, Recording, Take
from src.services.storage.repository import RecordingRepository
from src.services.storage.store import SqlClipStore

__all__ = [
    "Base",
    "Clip",
    "ClipStore",
    "Recording",
    "RecordingRepository",
    "SqlClipStore",
    "Take",
    "close_db",
    "get_engine",
    "get_session",
    "init_db",
    "reset_engine",
]
