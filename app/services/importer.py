"""Preview and commit stages of a watch-history import."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Sequence

from ..errors import ItemProcessingError
from ..models import (
    ConfirmImportRequest,
    DuplicateResolution,
    DuplicateStrategy,
    ImportResult,
    MatchCandidate,
    MergeFields,
    PreviewItem,
    RawWatchlistRow,
)
from ..utils import (
    duplicate_key,
    merge_providers,
    normalize_date_string,
    normalize_rating,
    normalize_watch_status,
    parse_streaming_providers,
)
from .collection import CollectionEntry, CollectionRepository
from .matcher import DEFAULT_MAX_CANDIDATES, CatalogMatcher
from .media import MediaLibrary

logger = logging.getLogger(__name__)

CommitOutcome = Literal["imported", "skipped", "merged", "overwritten"]

NO_MATCH_MESSAGE = "no match"


@dataclass(slots=True)
class MatchedRow:
    """A row that was matched and normalized successfully."""

    item: PreviewItem

    def to_preview_item(self) -> PreviewItem:
        return self.item


@dataclass(slots=True)
class FailedRow:
    """A row whose processing raised; it is previewed as skipped."""

    row: RawWatchlistRow
    reason: str

    def to_preview_item(self) -> PreviewItem:
        return PreviewItem(
            original_title=self.row.title,
            original_year=self.row.year,
            match_candidates=[],
            notes=self.row.notes,
            should_skip=True,
            error=self.reason,
        )


RowOutcome = MatchedRow | FailedRow


def merge_notes(
    existing: str | None,
    incoming: str | None,
    mode: Literal["keep", "replace", "append"],
) -> str | None:
    if mode == "replace":
        return incoming
    if mode == "append":
        if existing and incoming:
            return f"{existing}\n\n{incoming}"
        return existing or incoming
    return existing


def plan_merge(
    entry: CollectionEntry, item: PreviewItem, merge_fields: MergeFields
) -> dict[str, Any]:
    """Return the entry fields a ``merge`` resolution changes."""

    updates: dict[str, Any] = {}
    if merge_fields.status:
        updates["status"] = item.suggested_status
    if merge_fields.rating:
        updates["rating"] = item.rating
    if merge_fields.notes != "keep":
        notes = merge_notes(entry.notes, item.notes, merge_fields.notes)
        if notes != entry.notes:
            updates["notes"] = notes
    if merge_fields.streaming_providers == "replace":
        updates["streaming_providers"] = list(item.streaming_providers)
    elif merge_fields.streaming_providers == "merge":
        updates["streaming_providers"] = merge_providers(
            entry.streaming_providers, item.streaming_providers
        )
    return updates


def _parse_date_added(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class WatchlistImportService:
    """Builds import previews and commits confirmed items to a collection."""

    def __init__(
        self,
        matcher: CatalogMatcher,
        collection: CollectionRepository,
        media: MediaLibrary,
        *,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
        concurrency: int = 4,
    ) -> None:
        self._matcher = matcher
        self._collection = collection
        self._media = media
        self._max_candidates = max_candidates
        self._concurrency = max(1, concurrency)

    async def build_preview(
        self,
        rows: Sequence[RawWatchlistRow],
        user_id: str,
        *,
        max_candidates: int | None = None,
    ) -> list[PreviewItem]:
        """Return one preview item per row, in input order."""

        limit = max_candidates if max_candidates is not None else self._max_candidates
        existing = await self._collection.lookup_existing(user_id)
        duplicate_index: dict[tuple[str, int | None], CollectionEntry] = {}
        for entry in existing:
            duplicate_index.setdefault(duplicate_key(entry.title, entry.year), entry)

        semaphore = asyncio.Semaphore(self._concurrency)

        async def _guarded(row: RawWatchlistRow) -> RowOutcome:
            async with semaphore:
                return await self._preview_row(row, duplicate_index, limit)

        # gather() returns results in argument order, not completion order.
        outcomes = await asyncio.gather(*(_guarded(row) for row in rows))
        items = [outcome.to_preview_item() for outcome in outcomes]

        failed = sum(1 for outcome in outcomes if isinstance(outcome, FailedRow))
        logger.info(
            "Built import preview for user %s: %d rows, %d duplicates, %d failed",
            user_id,
            len(items),
            sum(1 for item in items if item.has_existing_entry),
            failed,
        )
        return items

    async def _preview_row(
        self,
        row: RawWatchlistRow,
        duplicate_index: dict[tuple[str, int | None], CollectionEntry],
        max_candidates: int,
    ) -> RowOutcome:
        try:
            existing = duplicate_index.get(duplicate_key(row.title, row.year))
            candidates = await self._matcher.find_matches(row, max_candidates)
            item = PreviewItem(
                original_title=row.title,
                original_year=row.year,
                match_candidates=candidates,
                selected_match_index=self._initial_selection(row, candidates),
                suggested_status=normalize_watch_status(row.status),
                rating=normalize_rating(row.rating),
                notes=row.notes,
                date_added=normalize_date_string(row.date_added),
                streaming_providers=parse_streaming_providers(row.streaming_providers),
                has_existing_entry=existing is not None,
                existing_entry_id=existing.id if existing is not None else None,
            )
        except Exception as exc:
            logger.warning("Failed to preview row %r: %s", row.title, exc)
            return FailedRow(row=row, reason=str(exc) or exc.__class__.__name__)
        return MatchedRow(item=item)

    @staticmethod
    def _initial_selection(
        row: RawWatchlistRow, candidates: list[MatchCandidate]
    ) -> int:
        """Prefer the candidate whose catalog id the row already carries."""

        if row.catalog_id is not None:
            for index, candidate in enumerate(candidates):
                if candidate.catalog_id != row.catalog_id:
                    continue
                if row.type is None or candidate.catalog_type == row.type:
                    return index
        return 0

    async def confirm_import(
        self, request: ConfirmImportRequest, user_id: str
    ) -> ImportResult:
        """Commit reviewed preview items one by one.

        Each item is its own unit of work: a failure is recorded against its
        index and the remaining items are still processed.
        """

        result = ImportResult()
        resolutions = {res.item_index: res for res in request.resolutions}
        owned_media: dict[int, str] | None = None

        for index, item in enumerate(request.items):
            if item.should_skip:
                result.skipped += 1
                continue
            if request.skip_unmatched and not item.match_candidates:
                result.skipped += 1
                continue

            resolution = resolutions.get(index)
            try:
                if item.has_existing_entry:
                    outcome = await self._resolve_duplicate(
                        item.existing_entry_id, item, resolution, request, user_id
                    )
                else:
                    if owned_media is None:
                        owned_media = {
                            entry.media_item_id: entry.id
                            for entry in await self._collection.lookup_existing(user_id)
                        }
                    outcome = await self._import_new(
                        item, resolution, request, user_id, owned_media
                    )
            except Exception as exc:
                message = str(exc) or exc.__class__.__name__
                logger.warning(
                    "Import of item %d (%r) failed: %s", index, item.original_title, message
                )
                result.record_failure(index, item.original_title, message)
                continue

            if outcome == "imported":
                result.imported += 1
            elif outcome == "merged":
                result.merged += 1
            elif outcome == "overwritten":
                result.overwritten += 1
            else:
                result.skipped += 1

        logger.info("Import for user %s finished: %s", user_id, result.summary())
        return result

    async def _resolve_duplicate(
        self,
        entry_id: str | None,
        item: PreviewItem,
        resolution: DuplicateResolution | None,
        request: ConfirmImportRequest,
        user_id: str,
    ) -> CommitOutcome:
        if not entry_id:
            raise ItemProcessingError("Missing existing entry id")

        strategy: DuplicateStrategy = (
            resolution.strategy if resolution is not None else request.default_duplicate_strategy
        )
        if strategy == "skip":
            return "skipped"

        entry = await self._collection.get_owned_entry(entry_id, user_id)
        if strategy == "overwrite":
            await self._collection.update_entry(
                entry.id,
                user_id,
                {
                    "status": item.suggested_status,
                    "rating": item.rating,
                    "notes": item.notes,
                },
            )
            return "overwritten"

        merge_fields = resolution.merge_fields if resolution is not None else MergeFields()
        updates = plan_merge(entry, item, merge_fields)
        if updates:
            await self._collection.update_entry(entry.id, user_id, updates)
        return "merged"

    async def _import_new(
        self,
        item: PreviewItem,
        resolution: DuplicateResolution | None,
        request: ConfirmImportRequest,
        user_id: str,
        owned_media: dict[int, str],
    ) -> CommitOutcome:
        candidate = item.selected_candidate()
        if candidate is None:
            raise ItemProcessingError(NO_MATCH_MESSAGE)

        media = await self._media.ensure_catalog_entity(
            candidate.catalog_id, candidate.catalog_type, fallback=candidate
        )
        existing_id = owned_media.get(media.id)
        if existing_id is not None:
            # Already collected (an earlier run or an earlier row of this batch).
            return await self._resolve_duplicate(
                existing_id, item, resolution, request, user_id
            )

        entry = await self._collection.create_entry(
            user_id,
            media.id,
            status=item.suggested_status,
            rating=item.rating,
            notes=item.notes,
            streaming_providers=item.streaming_providers,
            date_added=_parse_date_added(item.date_added),
        )
        owned_media[media.id] = entry.id
        return "imported"
