"""Exception hierarchy for the import/export pipeline.

Each error carries the HTTP status code the API layer reports for it, so
routes can let them propagate to a single exception handler.
"""

from __future__ import annotations

from typing import Any


class ReelportError(Exception):
    """Base exception for all Reelport errors."""

    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        detail: str | None = None,
        **extra: Any,
    ) -> None:
        self.message = message or self.__class__.message
        self.detail = detail
        self.extra = extra
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.detail:
            payload["detail"] = self.detail
        payload.update(self.extra)
        return payload


# Parse-time errors. These reject the whole upload.
class FormatError(ReelportError):
    """The upload is not a supported CSV or JSON document."""

    status_code = 415
    message = "Unsupported file format. Please upload a CSV or JSON file."


class RowShapeError(ReelportError):
    """A CSV line or JSON element does not have the expected shape."""

    status_code = 400
    message = "Invalid row"

    def __init__(
        self,
        message: str | None = None,
        detail: str | None = None,
        *,
        line: int | None = None,
        index: int | None = None,
    ) -> None:
        self.line = line
        self.index = index
        extra: dict[str, Any] = {}
        if line is not None:
            extra["line"] = line
        if index is not None:
            extra["index"] = index
        super().__init__(message, detail, **extra)


class MatchLookupFailure(ReelportError):
    """The catalog search could not be completed."""

    status_code = 502
    message = "Catalog lookup failed"


# Commit-time errors. These are recorded per item.
class ItemProcessingError(ReelportError):
    """A single preview item could not be committed."""

    status_code = 422
    message = "Item could not be imported"


class NotFoundError(ReelportError):
    """Requested resource not found."""

    status_code = 404
    message = "Resource not found"


class OwnershipError(ReelportError):
    """The resource exists but belongs to another user."""

    status_code = 403
    message = "Access denied"
