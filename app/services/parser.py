"""Parsing of uploaded watch-history files into raw rows."""

from __future__ import annotations

import json
import logging
from pathlib import PurePath
from typing import Any, Literal

from pydantic import ValidationError

from ..errors import FormatError, RowShapeError
from ..models import RawWatchlistRow

logger = logging.getLogger(__name__)

UploadFormat = Literal["csv", "json"]

_CONTENT_TYPES: dict[str, UploadFormat] = {
    "text/csv": "csv",
    "application/csv": "csv",
    "application/vnd.ms-excel": "csv",
    "application/json": "json",
    "text/json": "json",
}

# Lowercased header text -> RawWatchlistRow field.
_HEADER_ALIASES: dict[str, str] = {
    "title": "title",
    "name": "title",
    "year": "year",
    "status": "status",
    "rating": "rating",
    "notes": "notes",
    "note": "notes",
    "dateadded": "date_added",
    "date_added": "date_added",
    "date added": "date_added",
    "streamingproviders": "streaming_providers",
    "streaming_providers": "streaming_providers",
    "providers": "streaming_providers",
    "catalogid": "catalog_id",
    "catalog_id": "catalog_id",
    "tmdbid": "catalog_id",
    "tmdb_id": "catalog_id",
    "type": "type",
}


def detect_format(filename: str | None, content_type: str | None = None) -> UploadFormat:
    """Choose the parser from the file extension, then the content type."""

    if filename:
        suffix = PurePath(filename).suffix.lower().lstrip(".")
        if suffix in ("csv", "json"):
            return suffix  # type: ignore[return-value]
        if suffix:
            raise FormatError(detail=f"Unsupported extension '.{suffix}'")
    if content_type:
        media_type = content_type.split(";", 1)[0].strip().lower()
        if media_type in _CONTENT_TYPES:
            return _CONTENT_TYPES[media_type]
    raise FormatError(detail="Could not determine the file type")


def parse_upload(
    content: bytes,
    filename: str | None,
    content_type: str | None = None,
) -> list[RawWatchlistRow]:
    """Parse an uploaded CSV or JSON file into raw rows.

    Any malformed row rejects the whole file.
    """

    upload_format = detect_format(filename, content_type)
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise FormatError("File is not valid UTF-8 text") from exc

    rows = parse_json(text) if upload_format == "json" else parse_csv(text)
    logger.info("Parsed %d rows from %s upload", len(rows), upload_format)
    return rows


def parse_json(text: str) -> list[RawWatchlistRow]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RowShapeError("Invalid JSON document", detail=str(exc)) from exc

    if isinstance(data, dict) and isinstance(data.get("entries"), list):
        data = data["entries"]
    if not isinstance(data, list):
        raise RowShapeError("JSON file must contain an array of watchlist items")

    rows: list[RawWatchlistRow] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise RowShapeError(
                f"Invalid item at index {index}: expected an object", index=index
            )
        try:
            rows.append(RawWatchlistRow.model_validate(item))
        except ValidationError as exc:
            raise RowShapeError(
                f"Invalid item at index {index}",
                detail=_describe_errors(exc),
                index=index,
            ) from exc
    return rows


def parse_csv(text: str) -> list[RawWatchlistRow]:
    lines = text.split("\n")
    header_line_no: int | None = None
    headers: list[str] = []
    for line_no, line in enumerate(lines, start=1):
        if line.strip():
            header_line_no = line_no
            headers = [cell.strip() for cell in split_csv_line(line.rstrip("\r"))]
            break
    if header_line_no is None:
        raise RowShapeError("CSV file is empty", line=1)

    fields = [_HEADER_ALIASES.get(header.lower()) for header in headers]
    if "title" not in fields:
        raise RowShapeError(
            "CSV header must include a title column", line=header_line_no
        )

    rows: list[RawWatchlistRow] = []
    for line_no, line in enumerate(lines[header_line_no:], start=header_line_no + 1):
        line = line.rstrip("\r")
        if not line.strip():
            continue
        values = split_csv_line(line)
        if len(values) != len(headers):
            raise RowShapeError(
                f"Row {line_no} has {len(values)} values but expected {len(headers)}",
                line=line_no,
            )

        row_data: dict[str, Any] = {}
        for name, value in zip(fields, values):
            if name is not None and name not in row_data:
                row_data[name] = value or None
        try:
            rows.append(RawWatchlistRow.model_validate(row_data))
        except ValidationError as exc:
            raise RowShapeError(
                f"Invalid row {line_no}", detail=_describe_errors(exc), line=line_no
            ) from exc
    return rows


def split_csv_line(line: str) -> list[str]:
    """Split one CSV line on commas that are not inside double quotes.

    A doubled quote inside a quoted field is read as a literal quote. Unquoted
    values are trimmed of surrounding whitespace; quoted values are kept as
    written, and whitespace around the quotes is ignored.
    """

    values: list[str] = []
    current: list[str] = []
    in_quotes = False
    quoted = False
    index = 0
    length = len(line)
    while index < length:
        char = line[index]
        if in_quotes:
            if char == '"':
                if index + 1 < length and line[index + 1] == '"':
                    current.append('"')
                    index += 1
                else:
                    in_quotes = False
            else:
                current.append(char)
        elif char == '"':
            if not quoted and not "".join(current).strip():
                # Opening quote of the field; drop any padding before it.
                current = []
                quoted = True
            in_quotes = True
        elif char == ",":
            values.append(_finish_cell(current, quoted))
            current = []
            quoted = False
        elif not (quoted and char.isspace()):
            current.append(char)
        index += 1
    values.append(_finish_cell(current, quoted))
    return values


def _finish_cell(chars: list[str], quoted: bool) -> str:
    value = "".join(chars)
    return value if quoted else value.strip()


def _describe_errors(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(loc) for loc in error['loc']) or 'row'}: {error['msg']}"
        for error in exc.errors()
    )
