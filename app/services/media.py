"""Local persistence of catalog media items."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import MediaItem
from ..errors import MatchLookupFailure
from ..models import CatalogType, MatchCandidate
from .tmdb import TMDBSearchResult

logger = logging.getLogger(__name__)


class CatalogDetails(Protocol):
    async def get_details(
        self, tmdb_id: int, catalog_type: CatalogType
    ) -> TMDBSearchResult: ...


@dataclass(slots=True)
class MediaRecord:
    id: int
    tmdb_id: int
    tmdb_type: str
    title: str
    year: int | None
    poster_path: str | None
    created: bool = False


class MediaLibrary:
    """Makes sure catalog entities referenced by imports exist locally."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        catalog: CatalogDetails,
    ) -> None:
        self._session_factory = session_factory
        self._catalog = catalog

    async def ensure_catalog_entity(
        self,
        catalog_id: int,
        catalog_type: CatalogType,
        *,
        fallback: MatchCandidate | None = None,
    ) -> MediaRecord:
        """Return the local media item for a catalog id, creating it if absent.

        Details are fetched from the catalog for new items. When the catalog is
        unreachable and the preview candidate is supplied, its data is used.
        """

        existing = await self._find(catalog_id, catalog_type)
        if existing is not None:
            return existing

        try:
            details = await self._catalog.get_details(catalog_id, catalog_type)
        except MatchLookupFailure as exc:
            if fallback is None:
                raise
            logger.warning(
                "Using preview data for %s %s, catalog details unavailable: %s",
                catalog_type,
                catalog_id,
                exc,
            )
            details = TMDBSearchResult(
                tmdb_id=catalog_id,
                catalog_type=catalog_type,
                title=fallback.title,
                overview=fallback.overview,
                poster_path=fallback.poster_ref,
                year=fallback.year,
            )

        async with self._session_factory() as session:
            media = MediaItem(
                tmdb_id=catalog_id,
                tmdb_type=catalog_type,
                title=details.title,
                overview=details.overview,
                poster_path=details.poster_path,
                release_year=details.year,
            )
            session.add(media)
            try:
                await session.commit()
            except IntegrityError:
                # Another request created it first.
                await session.rollback()
                existing = await self._find(catalog_id, catalog_type)
                if existing is None:
                    raise
                return existing
            logger.info("Stored new %s %s (%s)", catalog_type, catalog_id, details.title)
            return self._to_record(media, created=True)

    async def _find(self, catalog_id: int, catalog_type: str) -> MediaRecord | None:
        async with self._session_factory() as session:
            stmt = select(MediaItem).where(
                MediaItem.tmdb_id == catalog_id,
                MediaItem.tmdb_type == catalog_type,
            )
            media = (await session.execute(stmt)).scalar_one_or_none()
            if media is None:
                return None
            return self._to_record(media)

    @staticmethod
    def _to_record(media: MediaItem, *, created: bool = False) -> MediaRecord:
        return MediaRecord(
            id=media.id,
            tmdb_id=media.tmdb_id,
            tmdb_type=media.tmdb_type,
            title=media.title,
            year=media.release_year,
            poster_path=media.poster_path,
            created=created,
        )
