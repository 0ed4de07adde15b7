"""Serialization of a user's collection for export."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from ..models import EXPORT_VERSION, ExportedEntry, ExportResponse, coerce_catalog_type
from ..utils import normalize_watch_status
from .collection import CollectionEntry, CollectionRepository

logger = logging.getLogger(__name__)

CSV_HEADERS: tuple[str, ...] = (
    "title",
    "year",
    "type",
    "status",
    "rating",
    "notes",
    "dateAdded",
    "dateWatched",
    "streamingProviders",
    "catalogId",
    "posterRef",
)


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _quote(value: str | None) -> str:
    """Wrap a string cell in quotes, doubling any quotes it contains."""

    return '"' + (value or "").replace('"', '""') + '"'


def _plain(value: Any) -> str:
    return "" if value is None else str(value)


def to_exported_entry(entry: CollectionEntry) -> ExportedEntry:
    return ExportedEntry(
        title=entry.title,
        year=entry.year,
        type=coerce_catalog_type(entry.tmdb_type) or "movie",
        status=normalize_watch_status(entry.status),
        rating=entry.rating,
        notes=entry.notes,
        date_added=_isoformat(entry.date_added) or "",
        date_watched=_isoformat(entry.date_updated),
        streaming_providers=list(entry.streaming_providers),
        catalog_id=entry.tmdb_id,
        poster_ref=entry.poster_path,
    )


def to_csv(export: ExportResponse) -> str:
    """Render an export document as CSV readable by the upload parser."""

    lines = [",".join(CSV_HEADERS)]
    for entry in export.entries:
        cells = [
            _quote(entry.title),
            _plain(entry.year),
            entry.type,
            entry.status,
            _plain(entry.rating),
            _quote(entry.notes),
            entry.date_added,
            _plain(entry.date_watched),
            _quote(";".join(entry.streaming_providers)),
            _plain(entry.catalog_id),
            _quote(entry.poster_ref),
        ]
        lines.append(",".join(cells))
    return "\n".join(lines)


def to_json(export: ExportResponse) -> str:
    return export.model_dump_json(by_alias=True, indent=2)


class ExportService:
    """Builds export documents from the collection store."""

    def __init__(self, collection: CollectionRepository):
        self._collection = collection

    async def export_collection(self, user_id: str) -> ExportResponse:
        entries = await self._collection.lookup_existing(user_id)
        exported = [to_exported_entry(entry) for entry in entries]
        logger.info("Exporting %d entries for user %s", len(exported), user_id)
        return ExportResponse(
            exported_at=datetime.now(timezone.utc).isoformat(),
            user_id=user_id,
            version=EXPORT_VERSION,
            total_entries=len(exported),
            entries=exported,
        )
