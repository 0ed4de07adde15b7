"""Pydantic models describing import and export payloads."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .utils import WatchStatus, parse_year

CatalogType = Literal["movie", "series"]
DuplicateStrategy = Literal["skip", "overwrite", "merge"]

EXPORT_VERSION = "1.0"


def coerce_catalog_type(value: object) -> CatalogType | None:
    """Map TMDB and tracker media type labels onto ``movie``/``series``."""

    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    if lowered in {"movie", "film"}:
        return "movie"
    if lowered in {"series", "tv", "show", "tv show", "episode"}:
        return "series"
    return None


class ApiModel(BaseModel):
    """Base model serialising to camelCase while accepting snake_case."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class RawWatchlistRow(ApiModel):
    """One record as read from an uploaded CSV or JSON file."""

    title: str
    year: int | None = None
    status: str | None = None
    rating: float | None = None
    notes: str | None = None
    date_added: str | None = None
    streaming_providers: list[str] | str | None = None
    catalog_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("catalogId", "catalog_id", "tmdbId", "tmdb_id"),
    )
    type: CatalogType | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _require_title(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValueError("title must not be blank")
            return stripped
        return value

    @field_validator("year", mode="before")
    @classmethod
    def _parse_year(cls, value: object) -> int | None:
        return parse_year(value)

    @field_validator("rating", mode="before")
    @classmethod
    def _parse_rating(cls, value: object) -> float | None:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return float(value)
        try:
            return float(str(value).strip())
        except ValueError:
            return None

    @field_validator("catalog_id", mode="before")
    @classmethod
    def _parse_catalog_id(cls, value: object) -> int | None:
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            return int(str(value).strip())
        except ValueError:
            return None

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, value: object) -> CatalogType | None:
        return coerce_catalog_type(value)

    @field_validator("status", "notes", "date_added", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str) and not value.strip():
            return None
        return value


class MatchCandidate(ApiModel):
    """A catalog entry proposed as the match for an imported row."""

    catalog_id: int
    catalog_type: CatalogType
    title: str
    year: int | None = None
    poster_ref: str | None = None
    overview: str | None = None
    confidence: float = Field(ge=0.0, le=1.0)


class PreviewItem(ApiModel):
    """An imported row awaiting user review before it is committed."""

    original_title: str
    original_year: int | None = None
    match_candidates: list[MatchCandidate] = Field(default_factory=list)
    selected_match_index: int | None = 0
    suggested_status: WatchStatus = "not_watched"
    rating: int | None = Field(default=None, ge=0, le=5)
    notes: str | None = None
    date_added: str | None = None
    streaming_providers: list[str] = Field(default_factory=list)
    has_existing_entry: bool = False
    existing_entry_id: str | None = None
    should_skip: bool = False
    error: str | None = None

    def selected_candidate(self) -> MatchCandidate | None:
        """Return the candidate the user picked, if the index is valid."""

        index = self.selected_match_index
        if index is None or index < 0 or index >= len(self.match_candidates):
            return None
        return self.match_candidates[index]


class MergeFields(ApiModel):
    """Per-field directives applied by a ``merge`` resolution."""

    status: bool = False
    rating: bool = False
    notes: Literal["keep", "replace", "append"] = "keep"
    streaming_providers: Literal["keep", "replace", "merge"] = "keep"


class DuplicateResolution(ApiModel):
    """How to reconcile one preview item with an existing entry."""

    item_index: int = Field(ge=0)
    strategy: DuplicateStrategy
    merge_fields: MergeFields = Field(default_factory=MergeFields)


class ConfirmImportRequest(ApiModel):
    """Body of the confirm-import request."""

    items: list[PreviewItem] = Field(default_factory=list)
    resolutions: list[DuplicateResolution] = Field(default_factory=list)
    skip_unmatched: bool = False
    default_duplicate_strategy: DuplicateStrategy = "skip"


class ImportItemError(ApiModel):
    item_index: int
    title: str
    message: str


class ImportResult(ApiModel):
    """Tally of a confirm-import batch."""

    imported: int = 0
    skipped: int = 0
    failed: int = 0
    merged: int = 0
    overwritten: int = 0
    errors: list[ImportItemError] = Field(default_factory=list)

    def record_failure(self, index: int, title: str, message: str) -> None:
        self.failed += 1
        self.errors.append(
            ImportItemError(item_index=index, title=title, message=message)
        )

    def summary(self) -> dict[str, Any]:
        return self.model_dump(exclude={"errors"})


class ExportedEntry(ApiModel):
    """One collection entry in the export document."""

    title: str
    year: int | None = None
    type: CatalogType
    status: WatchStatus
    rating: int | None = None
    notes: str | None = None
    date_added: str
    date_watched: str | None = None
    streaming_providers: list[str] = Field(default_factory=list)
    catalog_id: int | None = None
    poster_ref: str | None = None


class ExportResponse(ApiModel):
    """Full export document for one user."""

    exported_at: str
    user_id: str
    version: str = EXPORT_VERSION
    total_entries: int
    entries: list[ExportedEntry] = Field(default_factory=list)
