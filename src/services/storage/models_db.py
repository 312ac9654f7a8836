"""
SQLAlchemy ORM models for the LiveCut schema.

Tables: ``recordings``, ``takes``, ``clips``.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, Float, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.services.storage.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Recording(Base):
    """A recording project; owns its takes and clips."""

    __tablename__ = "recordings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), default="Untitled recording")
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))

    takes: Mapped[list["Take"]] = relationship(
        back_populates="recording",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    clips: Mapped[list["Clip"]] = relationship(
        back_populates="recording",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Recording id={self.id} name={self.name!r}>"


class Take(Base):
    """One continuous recording pass backed by a single video file."""

    __tablename__ = "takes"
    __table_args__ = (Index("ix_takes_recording_number", "recording_id", "take_number"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    recording_id: Mapped[str] = mapped_column(ForeignKey("recordings.id"))
    file_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    take_number: Mapped[int] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))

    recording: Mapped["Recording"] = relationship(back_populates="takes")
    clips: Mapped[list["Clip"]] = relationship(
        back_populates="take",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Take id={self.id} recording={self.recording_id} number={self.take_number}>"


class Clip(Base):
    """A speech segment of a take, placed on the recording's timeline."""

    __tablename__ = "clips"
    __table_args__ = (Index("ix_clips_recording_position", "recording_id", "position"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    recording_id: Mapped[str] = mapped_column(ForeignKey("recordings.id"))
    take_id: Mapped[str] = mapped_column(ForeignKey("takes.id"))
    source_start_time: Mapped[float] = mapped_column(Float)
    source_end_time: Mapped[float] = mapped_column(Float)
    position: Mapped[int] = mapped_column(default=0)
    text: Mapped[str | None] = mapped_column(Text, nullable=True)
    archived: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))

    recording: Mapped["Recording"] = relationship(back_populates="clips")
    take: Mapped["Take"] = relationship(back_populates="clips")

    def __repr__(self) -> str:
        return f"<Clip id={self.id} take={self.take_id} position={self.position}>"
