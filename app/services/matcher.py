"""Ranks catalog search results against an imported row."""

from __future__ import annotations

import logging
from typing import Protocol

from rapidfuzz import fuzz

from ..cache import TTLCache
from ..models import MatchCandidate, RawWatchlistRow
from ..utils import normalize_title
from .tmdb import TMDBSearchResult

logger = logging.getLogger(__name__)

CONFIDENCE_FLOOR = 0.3
DEFAULT_MAX_CANDIDATES = 5

TITLE_WEIGHT = 0.7
YEAR_WEIGHT = 0.3
POSTER_BOOST = 0.05
PARTIAL_MATCH_CAP = 0.99
NEUTRAL_YEAR_SCORE = 0.5
LARGE_YEAR_GAP = 10


class CatalogSearch(Protocol):
    async def search(self, title: str) -> list[TMDBSearchResult]: ...


def title_similarity(left: str | None, right: str | None) -> float:
    """Similarity of two titles in [0, 1], ignoring case and punctuation."""

    a = normalize_title(left)
    b = normalize_title(right)
    if not a or not b:
        return 0.0
    return fuzz.ratio(a, b) / 100.0


def year_score(candidate_year: int | None, target_year: int | None) -> float:
    if candidate_year is None or target_year is None:
        return NEUTRAL_YEAR_SCORE
    delta = abs(candidate_year - target_year)
    if delta == 0:
        return 1.0
    if delta == 1:
        return 0.8
    if delta == 2:
        return 0.6
    if delta <= 5:
        return 0.3
    return 0.0


def calculate_match_confidence(
    candidate_title: str | None,
    candidate_year: int | None,
    target_title: str | None,
    target_year: int | None,
    has_poster: bool,
) -> float:
    """Score how likely a catalog result is the title/year the user meant.

    An exact normalized title with an exact year scores 1.0. Every other
    combination is capped below that, so the exact match always ranks first.
    """

    title_score = title_similarity(candidate_title, target_title)
    if (
        title_score == 1.0
        and target_year is not None
        and candidate_year == target_year
    ):
        return 1.0

    if (
        candidate_year is not None
        and target_year is not None
        and abs(candidate_year - target_year) > LARGE_YEAR_GAP
    ):
        title_score /= 2

    score = TITLE_WEIGHT * title_score + YEAR_WEIGHT * year_score(
        candidate_year, target_year
    )
    if has_poster:
        score += POSTER_BOOST
    score = min(score, PARTIAL_MATCH_CAP)
    return round(max(0.0, score), 4)


class CatalogMatcher:
    """Finds catalog candidates for imported rows.

    Search results are cached by normalized title through the injected cache;
    lookups that fail for any reason yield no candidates.
    """

    def __init__(
        self,
        catalog: CatalogSearch,
        cache: TTLCache[list[TMDBSearchResult]] | None = None,
    ) -> None:
        self._catalog = catalog
        self._cache = cache

    async def find_matches(
        self,
        row: RawWatchlistRow,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ) -> list[MatchCandidate]:
        try:
            results = await self._search(row.title)
        except Exception as exc:
            logger.warning("Catalog search failed for %r: %s", row.title, exc)
            return []

        return self.rank(row, results, max_candidates=max_candidates)

    @staticmethod
    def rank(
        row: RawWatchlistRow,
        results: list[TMDBSearchResult],
        *,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ) -> list[MatchCandidate]:
        """Score, filter and order raw catalog results for ``row``."""

        if max_candidates <= 0:
            return []

        seen: set[tuple[str, int]] = set()
        candidates: list[MatchCandidate] = []
        for result in results:
            identity = (result.catalog_type, result.tmdb_id)
            if identity in seen:
                continue
            seen.add(identity)
            confidence = calculate_match_confidence(
                result.title,
                result.year,
                row.title,
                row.year,
                bool(result.poster_path),
            )
            if confidence < CONFIDENCE_FLOOR:
                continue
            candidates.append(
                MatchCandidate(
                    catalog_id=result.tmdb_id,
                    catalog_type=result.catalog_type,
                    title=result.title,
                    year=result.year,
                    poster_ref=result.poster_path,
                    overview=result.overview,
                    confidence=confidence,
                )
            )

        # sorted() is stable, so equal scores keep the catalog's ordering.
        candidates = sorted(candidates, key=lambda c: c.confidence, reverse=True)
        return candidates[:max_candidates]

    async def _search(self, title: str) -> list[TMDBSearchResult]:
        key = normalize_title(title)
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
        results = await self._catalog.search(title)
        if self._cache is not None:
            self._cache.set(key, results)
        return results
