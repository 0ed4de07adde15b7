"""SQLAlchemy ORM models backing the persistent state."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def _new_entry_id() -> str:
    return uuid.uuid4().hex


class MediaItem(Base):
    """Local copy of a catalog (TMDB) movie or series."""

    __tablename__ = "media_items"
    __table_args__ = (
        UniqueConstraint("tmdb_id", "tmdb_type", name="uq_media_items_tmdb"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tmdb_id: Mapped[int] = mapped_column(Integer, index=True)
    tmdb_type: Mapped[str] = mapped_column(String(16))
    title: Mapped[str] = mapped_column(String(255))
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    poster_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    release_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )

    entries: Mapped[list["WatchlistEntry"]] = relationship(back_populates="media_item")


class WatchlistEntry(Base):
    """A media item in one user's collection."""

    __tablename__ = "watchlist_entries"
    __table_args__ = (
        UniqueConstraint("user_id", "media_item_id", name="uq_watchlist_entries_user_media"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_entry_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    media_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("media_items.id", ondelete="CASCADE")
    )
    status: Mapped[str] = mapped_column(String(16), default="not_watched")
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    streaming_providers: Mapped[list[str]] = mapped_column(JSON, default=list)
    date_added: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    date_updated: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, onupdate=datetime.utcnow
    )

    media_item: Mapped[MediaItem] = relationship(back_populates="entries")
