"""
Database engine, sessions and schema versioning for the clip store.

``get_session()`` is the single way in: it yields an ``AsyncSession`` and
commits when the block exits cleanly, rolling back otherwise.

The schema is brought up to date by numbered steps. The applied step is
kept in SQLite's ``PRAGMA user_version``, so every step runs once per
database file.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy import make_url, text
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.core.config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the recordings/takes/clips tables."""


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _ensure_sqlite_dir(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or not parsed.database:
        return
    if parsed.database == ":memory:":
        return
    Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


def get_engine(url: str | None = None) -> AsyncEngine:
    """Return the process-wide engine.

    The first call binds it to *url* (or ``Settings.database_url``) and
    creates the directory of a file-backed SQLite database.
    """
    global _engine
    if _engine is None:
        db_url = url or get_settings().database_url
        _ensure_sqlite_dir(db_url)
        _engine = create_async_engine(db_url, echo=False)
    return _engine


def get_session_factory(
    engine: AsyncEngine | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Return the session factory, bound to *engine* on first use."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(engine or get_engine(), expire_on_commit=False)
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """One transaction: commit on clean exit, roll back on any error."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ---------------------------------------------------------------------------
# Schema versions
# ---------------------------------------------------------------------------


async def _create_tables(conn: AsyncConnection) -> None:
    await conn.run_sync(Base.metadata.create_all)


async def _add_clip_text_and_archived(conn: AsyncConnection) -> None:
    # Tables created by step 1 on this model already carry both columns
    rows = (await conn.execute(text("PRAGMA table_info(clips)"))).fetchall()
    existing = {row[1] for row in rows}
    for column, ddl in (("text", "TEXT"), ("archived", "BOOLEAN NOT NULL DEFAULT 0")):
        if column not in existing:
            await conn.execute(text(f"ALTER TABLE clips ADD COLUMN {column} {ddl}"))


SchemaStep = Callable[[AsyncConnection], Awaitable[None]]

SCHEMA_STEPS: list[tuple[int, str, SchemaStep]] = [
    (1, "create recordings, takes and clips", _create_tables),
    (2, "add clip text and archived flag", _add_clip_text_and_archived),
]

SCHEMA_VERSION = SCHEMA_STEPS[-1][0]


async def get_schema_version(conn: AsyncConnection) -> int:
    return (await conn.execute(text("PRAGMA user_version"))).scalar_one()


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Apply every schema step newer than the database's recorded version.

    Args:
        engine: Engine to migrate (defaults to the process-wide one).
    """
    eng = engine or get_engine()
    async with eng.begin() as conn:
        current = await get_schema_version(conn)
        for version, description, apply in SCHEMA_STEPS:
            if version <= current:
                continue
            logger.info("Applying schema step %d: %s", version, description)
            await apply(conn)
            # PRAGMA does not accept bound parameters
            await conn.execute(text(f"PRAGMA user_version = {int(version)}"))


async def close_db() -> None:
    """Dispose the engine; the next ``get_engine()`` starts over."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def reset_engine() -> None:
    """Forget the engine without disposing it (tests inject their own)."""
    global _engine, _session_factory
    _engine = None
    _session_factory = None
