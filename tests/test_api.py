"""HTTP surface of the import/export service."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import settings
from app.main import create_app, register_routes
from app.models import (
    ConfirmImportRequest,
    ExportedEntry,
    ExportResponse,
    ImportResult,
    MatchCandidate,
    PreviewItem,
)
from app.services.exporter import ExportService
from app.services.importer import WatchlistImportService

HEADERS = {"X-User-Id": "alice"}


class DummyImportService(WatchlistImportService):
    """Records calls instead of matching against a catalog."""

    def __init__(self) -> None:  # pragma: no cover - nothing to initialise
        # Skip super().__init__ so no catalog or database is needed.
        self.rows: list | None = None
        self.request: ConfirmImportRequest | None = None
        self.user_id: str | None = None

    async def build_preview(self, rows, user_id, *, max_candidates=None):  # type: ignore[override]
        self.rows = list(rows)
        self.user_id = user_id
        return [
            PreviewItem(
                original_title=row.title,
                original_year=row.year,
                match_candidates=[
                    MatchCandidate(
                        catalog_id=27205,
                        catalog_type="movie",
                        title=row.title,
                        year=row.year,
                        confidence=1.0,
                    )
                ],
            )
            for row in rows
        ]

    async def confirm_import(self, request, user_id):  # type: ignore[override]
        self.request = request
        self.user_id = user_id
        return ImportResult(imported=len(request.items) - 1, skipped=1)


class DummyExportService(ExportService):
    def __init__(self) -> None:  # pragma: no cover - nothing to initialise
        self.user_id: str | None = None

    async def export_collection(self, user_id):  # type: ignore[override]
        self.user_id = user_id
        entry = ExportedEntry(
            title="Heat",
            year=1995,
            type="movie",
            status="completed",
            rating=5,
            date_added="2024-01-02T00:00:00+00:00",
            streaming_providers=["netflix"],
            catalog_id=949,
        )
        return ExportResponse(
            exported_at="2024-06-01T00:00:00+00:00",
            user_id=user_id,
            total_entries=1,
            entries=[entry],
        )


def _app() -> tuple[FastAPI, DummyImportService, DummyExportService]:
    app = FastAPI()
    register_routes(app)
    importer = DummyImportService()
    exporter = DummyExportService()
    app.state.import_service = importer
    app.state.export_service = exporter
    return app, importer, exporter


def test_preview_parses_upload_and_returns_items() -> None:
    app, importer, _ = _app()

    with TestClient(app) as client:
        response = client.post(
            "/watchlist/import/preview",
            files={"file": ("history.csv", b"title,year\nInception,2010\n", "text/csv")},
            headers=HEADERS,
        )

    assert response.status_code == 200
    payload = response.json()
    assert importer.user_id == "alice"
    assert [row.title for row in importer.rows] == ["Inception"]
    assert payload[0]["originalTitle"] == "Inception"
    assert payload[0]["originalYear"] == 2010
    assert payload[0]["selectedMatchIndex"] == 0
    assert payload[0]["hasExistingEntry"] is False
    assert payload[0]["matchCandidates"][0]["catalogId"] == 27205


def test_requests_without_user_are_rejected() -> None:
    app, _, _ = _app()

    with TestClient(app) as client:
        preview = client.post(
            "/watchlist/import/preview",
            files={"file": ("history.csv", b"title\nHeat\n", "text/csv")},
        )
        export = client.get("/watchlist/export", headers={"X-User-Id": "  "})

    assert preview.status_code == 401
    assert export.status_code == 401


def test_unsupported_upload_format_is_415() -> None:
    app, importer, _ = _app()

    with TestClient(app) as client:
        response = client.post(
            "/watchlist/import/preview",
            files={"file": ("history.txt", b"Heat", "text/plain")},
            headers=HEADERS,
        )

    assert response.status_code == 415
    assert "error" in response.json()
    assert importer.rows is None


def test_malformed_row_is_400_with_line_number() -> None:
    app, _, _ = _app()

    with TestClient(app) as client:
        response = client.post(
            "/watchlist/import/preview",
            files={"file": ("history.csv", b"title,year\nHeat,1995,extra\n", "text/csv")},
            headers=HEADERS,
        )

    assert response.status_code == 400
    assert response.json()["line"] == 2


def test_oversized_upload_is_413(monkeypatch) -> None:
    monkeypatch.setattr(settings, "upload_max_bytes", 16)
    app, importer, _ = _app()

    with TestClient(app) as client:
        response = client.post(
            "/watchlist/import/preview",
            files={"file": ("history.csv", b"title\n" + b"Heat\n" * 10, "text/csv")},
            headers=HEADERS,
        )

    assert response.status_code == 413
    assert importer.rows is None


def test_confirm_accepts_camel_case_body() -> None:
    app, importer, _ = _app()
    body = {
        "items": [
            {"originalTitle": "Heat", "originalYear": 1995, "hasExistingEntry": True,
             "existingEntryId": "abc"},
            {"originalTitle": "Inception", "suggestedStatus": "watching", "rating": 4},
        ],
        "resolutions": [
            {"itemIndex": 0, "strategy": "merge",
             "mergeFields": {"notes": "append", "streamingProviders": "merge"}},
        ],
        "skipUnmatched": True,
    }

    with TestClient(app) as client:
        response = client.post("/watchlist/import/confirm", json=body, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["imported"] == 1
    assert response.json()["skipped"] == 1
    request = importer.request
    assert request is not None
    assert request.skip_unmatched is True
    assert request.default_duplicate_strategy == "skip"
    assert request.resolutions[0].merge_fields.notes == "append"
    assert request.resolutions[0].merge_fields.status is False
    assert request.items[1].suggested_status == "watching"


def test_confirm_rejects_unknown_strategy() -> None:
    app, _, _ = _app()

    with TestClient(app) as client:
        response = client.post(
            "/watchlist/import/confirm",
            json={"items": [], "defaultDuplicateStrategy": "replace"},
            headers=HEADERS,
        )

    assert response.status_code == 422


def test_export_json_document() -> None:
    app, _, exporter = _app()

    with TestClient(app) as client:
        response = client.get("/watchlist/export", headers=HEADERS)

    assert response.status_code == 200
    payload = response.json()
    assert exporter.user_id == "alice"
    assert payload["userId"] == "alice"
    assert payload["totalEntries"] == 1
    assert payload["entries"][0]["catalogId"] == 949


def test_export_csv_download() -> None:
    app, _, _ = _app()

    with TestClient(app) as client:
        response = client.get("/watchlist/export", params={"format": "CSV"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="watchlist-')
    assert disposition.endswith('.csv"')
    lines = response.text.split("\n")
    assert lines[0].startswith("title,year,type,status,rating")
    assert lines[1].startswith('"Heat",1995,movie,completed,5,')


def test_export_rejects_unknown_format() -> None:
    app, _, _ = _app()

    with TestClient(app) as client:
        response = client.get("/watchlist/export", params={"format": "xml"}, headers=HEADERS)

    assert response.status_code == 400


def test_full_application_round_trip_without_catalog(monkeypatch, database_url) -> None:
    """With no TMDB key the service still previews rows, just without matches."""

    monkeypatch.setattr(settings, "database_url", database_url)
    monkeypatch.setattr(settings, "tmdb_api_key", None)

    with TestClient(create_app()) as client:
        assert client.get("/healthz").json() == {"status": "ok"}

        preview = client.post(
            "/watchlist/import/preview",
            files={"file": ("history.json", b'[{"title": "Heat", "year": 1995}]', "application/json")},
            headers=HEADERS,
        )
        assert preview.status_code == 200
        items = preview.json()
        assert items[0]["matchCandidates"] == []

        confirm = client.post(
            "/watchlist/import/confirm",
            json={"items": items, "skipUnmatched": True},
            headers=HEADERS,
        )
        assert confirm.status_code == 200
        assert confirm.json()["skipped"] == 1

        export = client.get("/watchlist/export", headers=HEADERS)
        assert export.json()["totalEntries"] == 0
