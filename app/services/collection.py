"""User-scoped storage of watchlist entries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..db_models import WatchlistEntry
from ..errors import ItemProcessingError, NotFoundError, OwnershipError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"status", "rating", "notes", "streaming_providers"})


@dataclass(slots=True)
class CollectionEntry:
    """Detached snapshot of a watchlist entry and its media item."""

    id: str
    user_id: str
    media_item_id: int
    tmdb_id: int
    tmdb_type: str
    title: str
    year: int | None
    poster_path: str | None
    status: str
    rating: int | None
    notes: str | None
    streaming_providers: list[str] = field(default_factory=list)
    date_added: datetime | None = None
    date_updated: datetime | None = None

    @classmethod
    def from_record(cls, record: WatchlistEntry) -> "CollectionEntry":
        media = record.media_item
        return cls(
            id=record.id,
            user_id=record.user_id,
            media_item_id=record.media_item_id,
            tmdb_id=media.tmdb_id,
            tmdb_type=media.tmdb_type,
            title=media.title,
            year=media.release_year,
            poster_path=media.poster_path,
            status=record.status,
            rating=record.rating,
            notes=record.notes,
            streaming_providers=list(record.streaming_providers or []),
            date_added=record.date_added,
            date_updated=record.date_updated,
        )


class CollectionRepository:
    """Reads and writes a user's collection; every call is scoped by user id."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def lookup_existing(self, user_id: str) -> list[CollectionEntry]:
        """Return the user's entries ordered by the time they were added."""

        async with self._session_factory() as session:
            stmt = (
                select(WatchlistEntry)
                .where(WatchlistEntry.user_id == user_id)
                .options(selectinload(WatchlistEntry.media_item))
                .order_by(WatchlistEntry.date_added.asc(), WatchlistEntry.id.asc())
            )
            result = await session.execute(stmt)
            return [CollectionEntry.from_record(record) for record in result.scalars()]

    async def get_owned_entry(self, entry_id: str, user_id: str) -> CollectionEntry:
        async with self._session_factory() as session:
            record = await self._load_owned(session, entry_id, user_id)
            return CollectionEntry.from_record(record)

    async def create_entry(
        self,
        user_id: str,
        media_item_id: int,
        *,
        status: str,
        rating: int | None,
        notes: str | None,
        streaming_providers: list[str] | None = None,
        date_added: datetime | None = None,
    ) -> CollectionEntry:
        async with self._session_factory() as session:
            record = WatchlistEntry(
                user_id=user_id,
                media_item_id=media_item_id,
                status=status,
                rating=rating,
                notes=notes,
                streaming_providers=list(streaming_providers or []),
            )
            if date_added is not None:
                record.date_added = date_added
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ItemProcessingError(
                    "Media item is already in the collection"
                ) from exc
            record = await self._load_owned(session, record.id, user_id)
            return CollectionEntry.from_record(record)

    async def update_entry(
        self, entry_id: str, user_id: str, fields: Mapping[str, Any]
    ) -> CollectionEntry:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        async with self._session_factory() as session:
            record = await self._load_owned(session, entry_id, user_id)
            if fields:
                for name, value in fields.items():
                    setattr(record, name, list(value) if name == "streaming_providers" else value)
                record.date_updated = datetime.utcnow()
                await session.commit()
            return CollectionEntry.from_record(record)

    @staticmethod
    async def _load_owned(
        session: AsyncSession, entry_id: str, user_id: str
    ) -> WatchlistEntry:
        record = await session.get(
            WatchlistEntry,
            entry_id,
            options=[selectinload(WatchlistEntry.media_item)],
            populate_existing=True,
        )
        if record is None:
            raise NotFoundError("Existing entry not found", detail=entry_id)
        if record.user_id != user_id:
            logger.warning(
                "User %s attempted to modify entry %s owned by another user",
                user_id,
                entry_id,
            )
            raise OwnershipError("Existing entry belongs to another user", detail=entry_id)
        return record
