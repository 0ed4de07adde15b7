"""Normalization helpers shared by the import and export pipeline."""

from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, datetime
from typing import Any, Iterable, Literal

WatchStatus = Literal["not_watched", "watching", "completed"]

DEFAULT_STATUS: WatchStatus = "not_watched"
RATING_MIN = 0
RATING_MAX = 5

_NON_WORD_RE = re.compile(r"[\W_]+")
_YEAR_RE = re.compile(r"(18|19|20|21)\d{2}")
_PROVIDER_SPLIT_RE = re.compile(r"[;,|]")

_STATUS_ALIASES: dict[str, WatchStatus] = {
    "completed": "completed",
    "complete": "completed",
    "watched": "completed",
    "seen": "completed",
    "finished": "completed",
    "done": "completed",
    "watching": "watching",
    "currently watching": "watching",
    "in progress": "watching",
    "started": "watching",
    "rewatching": "watching",
    "not watched": "not_watched",
    "unwatched": "not_watched",
    "plan to watch": "not_watched",
    "planned": "not_watched",
    "to watch": "not_watched",
    "want to watch": "not_watched",
    "watchlist": "not_watched",
}

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)


def normalize_title(value: str | None) -> str:
    """Return a case and punctuation insensitive form of a title."""

    if not value:
        return ""
    value = unicodedata.normalize("NFKD", value)
    value = "".join(char for char in value if not unicodedata.combining(char))
    value = value.replace("&", " and ").replace("'", "").replace("\u2019", "")
    value = _NON_WORD_RE.sub(" ", value.casefold())
    return " ".join(value.split())


def duplicate_key(title: str | None, year: int | None) -> tuple[str, int | None]:
    """Key used to detect an incoming row already present in a collection."""

    return ((title or "").strip().casefold(), year)


def parse_year(value: Any) -> int | None:
    """Extract a plausible four digit year from ints, dates or free text."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 1800 <= value <= 2199 else None
    if isinstance(value, float) and value.is_integer():
        return parse_year(int(value))
    if not value:
        return None
    match = _YEAR_RE.search(str(value))
    if not match:
        return None
    return int(match.group(0))


def normalize_watch_status(value: str | None) -> WatchStatus:
    """Map free-form tracker statuses to the closed status set."""

    if not value:
        return DEFAULT_STATUS
    key = value.strip().lower().replace("_", " ").replace("-", " ")
    key = " ".join(key.split())
    return _STATUS_ALIASES.get(key, DEFAULT_STATUS)


def normalize_rating(value: Any) -> int | None:
    """Scale a rating onto the 0..5 integer range.

    Values up to 5 are taken as stars, up to 10 as a ten point scale and up
    to 100 as a percentage. Anything else becomes ``None``.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    elif isinstance(value, (int, float)):
        number = float(value)
    else:
        return None

    if math.isnan(number) or number < 0:
        return None
    if number <= RATING_MAX:
        scaled = number
    elif number <= 10:
        scaled = number / 2
    elif number <= 100:
        scaled = number / 20
    else:
        return None
    rounded = int(math.floor(scaled + 0.5))
    return max(RATING_MIN, min(RATING_MAX, rounded))


def normalize_date_string(value: Any) -> str | None:
    """Return an ISO ``YYYY-MM-DD`` date, or ``None`` when unparseable."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def parse_streaming_providers(value: str | Iterable[Any] | None) -> list[str]:
    """Split, lowercase and de-duplicate streaming provider names."""

    if value is None:
        return []
    if isinstance(value, str):
        raw_values: Iterable[Any] = _PROVIDER_SPLIT_RE.split(value)
    else:
        raw_values = value

    providers: list[str] = []
    for raw in raw_values:
        if raw is None:
            continue
        name = " ".join(str(raw).split()).lower()
        if name and name not in providers:
            providers.append(name)
    return providers


def merge_providers(existing: Iterable[str], incoming: Iterable[str]) -> list[str]:
    """Set union of two provider lists that keeps first-seen order."""

    return parse_streaming_providers([*existing, *incoming])
