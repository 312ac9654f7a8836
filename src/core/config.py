"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """LiveCut application settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        silence_threshold_db: Noise floor used by offline re-detection.
        detector_provider: Re-detection backend ("ffmpeg").
        database_url: Async SQLAlchemy connection string for SQLite.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Offline re-detection ---
    # Replaces live-detected clips once a take's video file is finalized
    detector_provider: str = "ffmpeg"
    ffmpeg_binary: str = "ffmpeg"
    silence_threshold_db: int = -50  # User-adjustable noise floor (dB)
    min_silence_duration: float = 0.8  # Seconds of quiet that count as a gap
    clip_end_padding: float = 0.3  # Added to the end of clips between two silences
    min_clip_length: float = 1.0  # Shorter speech segments are dropped

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the FastAPI server
    app_port: int = 8000
    log_level: str = "INFO"  # Python logging level
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:1420"]

    # --- Storage ---
    # Paths are relative to the project root; absolute paths also supported
    database_url: str = "sqlite+aiosqlite:///data/livecut.db"
    recordings_dir: str = "data/recordings"  # Where the recorder writes take files


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
