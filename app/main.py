"""Entry point for the FastAPI-powered import/export service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import date

import httpx
from fastapi import Depends, FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .cache import ExpiryPolicy, TTLCache
from .config import settings
from .database import Database
from .errors import ReelportError
from .models import ConfirmImportRequest, ImportResult, PreviewItem
from .services.collection import CollectionRepository
from .services.exporter import ExportService, to_csv
from .services.importer import WatchlistImportService
from .services.matcher import CatalogMatcher
from .services.media import MediaLibrary
from .services.parser import parse_upload
from .services.tmdb import TMDBClient, TMDBSearchResult

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(15.0, connect=5.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    if not settings.tmdb_api_key:
        logger.warning("TMDB_API_KEY is not set; imports will find no matches")

    tmdb = TMDBClient(settings, tmdb_http_client)
    search_cache: TTLCache[list[TMDBSearchResult]] = TTLCache(
        policy=ExpiryPolicy(ttl_seconds=settings.search_cache_ttl_seconds),
        max_entries=settings.search_cache_max_entries,
    )
    collection = CollectionRepository(database.session_factory)
    import_service = WatchlistImportService(
        CatalogMatcher(tmdb, search_cache),
        collection,
        MediaLibrary(database.session_factory, tmdb),
        max_candidates=settings.import_max_candidates,
        concurrency=settings.preview_concurrency,
    )

    fastapi_app.state.import_service = import_service
    fastapi_app.state.export_service = ExportService(collection)
    fastapi_app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Import and export of movie and TV watch history",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_import_service(app: FastAPI) -> WatchlistImportService:
    service = getattr(app.state, "import_service", None)
    if not isinstance(service, WatchlistImportService):
        raise RuntimeError("Import service not initialised")
    return service


def get_export_service(app: FastAPI) -> ExportService:
    service = getattr(app.state, "export_service", None)
    if not isinstance(service, ExportService):
        raise RuntimeError("Export service not initialised")
    return service


async def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, supplied by the authenticating proxy."""

    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return user_id


def register_routes(fastapi_app: FastAPI) -> None:
    async def _reelport_error_handler(_: Request, exc: ReelportError) -> JSONResponse:
        logger.info("Request rejected: %s (%s)", exc.message, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    fastapi_app.add_exception_handler(ReelportError, _reelport_error_handler)  # type: ignore[arg-type]

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.post("/watchlist/import/preview", response_model=list[PreviewItem])
    async def import_preview(
        file: UploadFile = File(...),
        user_id: str = Depends(get_user_id),
    ) -> list[PreviewItem]:
        content = await file.read()
        if len(content) > settings.upload_max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File exceeds the {settings.upload_max_bytes} byte upload limit",
            )
        rows = parse_upload(content, file.filename, file.content_type)
        service = get_import_service(fastapi_app)
        return await service.build_preview(rows, user_id)

    @fastapi_app.post("/watchlist/import/confirm", response_model=ImportResult)
    async def import_confirm(
        payload: ConfirmImportRequest,
        user_id: str = Depends(get_user_id),
    ) -> ImportResult:
        service = get_import_service(fastapi_app)
        return await service.confirm_import(payload, user_id)

    @fastapi_app.get("/watchlist/export")
    async def export_watchlist(
        export_format: str = Query(default="json", alias="format"),
        user_id: str = Depends(get_user_id),
    ) -> Response:
        normalized = export_format.strip().lower()
        if normalized not in {"json", "csv"}:
            raise HTTPException(status_code=400, detail="format must be 'json' or 'csv'")

        service = get_export_service(fastapi_app)
        export = await service.export_collection(user_id)
        if normalized == "csv":
            filename = f"watchlist-{date.today().isoformat()}.csv"
            return Response(
                content=to_csv(export),
                media_type="text/csv",
                headers={"Content-Disposition": f'attachment; filename="{filename}"'},
            )
        return JSONResponse(export.model_dump(mode="json", by_alias=True))


app = create_app()
