"""FastAPI server for wp-prospector.

Exposes the search cycle, stored-result management, scan dispatch and the
scan-service callback over HTTP.

Endpoints:
    POST/GET/DELETE/PATCH /api/search - run cycle, list, delete query, set status
    GET /api/search/pagination - cursors for the caller
    GET /api/search/result/{id} - one stored result
    POST /api/pages - manual add
    POST /api/update-metadata - bulk contact page, category and WordPress flags
    POST /api/save - scan-service callback (shared-secret header)
    POST /api/results/{id}/scan - dispatch a scan
    GET/POST /api/public/unprocessed - claim and resolve work for external scanners
    GET /api/analytics - per-user summary
    GET /health - Health check
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wp_prospector import __version__
from wp_prospector.api.schemas import (
    AnalyticsResponse,
    ClaimResolveRequest,
    ClaimResponse,
    CursorOut,
    DeleteSearchRequest,
    HealthResponse,
    HistoryEntryOut,
    HistoryResponse,
    ManualPageRequest,
    ManualPageResponse,
    MessageResponse,
    MetadataUpdateResponse,
    PaginationStatesResponse,
    QueryResultsResponse,
    ResultResponse,
    ScanCallbackRequest,
    ScanCallbackResponse,
    SearchRequest,
    SearchResponse,
    SearchResultOut,
    StatusUpdateRequest,
)
from wp_prospector.config import Settings
from wp_prospector.prospecting.controllers import build_search_provider, open_repository
from wp_prospector.prospecting.errors import (
    CallbackAuthError,
    InputValidationError,
    ProspectingError,
    ResultNotFoundError,
    SearchProviderError,
)
from wp_prospector.prospecting.models import ScanCallback, ScanOutcome, SearchCycleRequest
from wp_prospector.prospecting.pipeline import SearchOrchestrator
from wp_prospector.prospecting.repository import SQLiteRepository
from wp_prospector.prospecting.scan_client import ScanServiceClient, ScanServiceConfig
from wp_prospector.prospecting.services.cursor_service import PaginationCursorManager
from wp_prospector.prospecting.services.intake_service import ManualIntakeService
from wp_prospector.prospecting.services.metadata_service import MetadataService
from wp_prospector.prospecting.services.scan_service import ScanDispatchService
from wp_prospector.prospecting.services.status_service import ProcessingStateTracker
from wp_prospector.prospecting.sources.base import SearchProvider
from wp_prospector.prospecting.storage.common import utc_now

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Settings], SearchProvider]
ScanClientFactory = Callable[[Settings], ScanServiceClient]


def build_scan_client(settings: Settings) -> ScanServiceClient:
    return ScanServiceClient(
        ScanServiceConfig(
            service_url=settings.scan.service_url or "",
            callback_url=settings.scan.callback_url or "",
            timeout_seconds=settings.scan.timeout_seconds,
        ),
    )


def create_app(
    settings: Settings | None = None,
    *,
    provider_factory: ProviderFactory = build_search_provider,
    scan_client_factory: ScanClientFactory = build_scan_client,
) -> FastAPI:
    """Build the API application bound to one settings object."""

    resolved = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        with open_repository(resolved) as repository:
            app.state.repository = repository
            logger.info("Serving with database %s", resolved.db_path)
            yield

    app = FastAPI(
        title="wp-prospector API",
        description="WordPress lead search, deduplication and scan tracking.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = resolved
    app.state.provider_factory = provider_factory
    app.state.scan_client_factory = scan_client_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ProspectingError)
    async def _prospecting_error(_: Request, error: ProspectingError) -> JSONResponse:
        if error.status_code >= 500:
            logger.error("Request failed (%s): %s", error.code, error)
        content: dict[str, object] = {"error": str(error)}
        if error.details:
            content["details"] = list(error.details)
        return JSONResponse(status_code=error.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(_: Request, error: RequestValidationError) -> JSONResponse:
        first = error.errors()[0] if error.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        detail = f"{location}: {message}" if location else message
        return JSONResponse(status_code=400, content={"error": detail})

    _register_routes(app)
    return app


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_repository(request: Request) -> SQLiteRepository:
    return request.app.state.repository


def current_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """Resolve the caller from the identity header set by the fronting auth layer."""

    user_id = (x_user_id or "").strip()
    if not user_id:
        raise CallbackAuthError("Unauthorized")
    return user_id


def require_callback_key(
    settings: Annotated[Settings, Depends(get_settings)],
    x_callback_api_key: Annotated[str | None, Header()] = None,
) -> None:
    expected = settings.scan.callback_api_key
    if not expected or not x_callback_api_key:
        raise CallbackAuthError("Unauthorized")
    if not secrets.compare_digest(expected, x_callback_api_key):
        raise CallbackAuthError("Unauthorized")


SettingsDep = Annotated[Settings, Depends(get_settings)]
RepositoryDep = Annotated[SQLiteRepository, Depends(get_repository)]
UserDep = Annotated[str, Depends(current_user_id)]


def _register_routes(app: FastAPI) -> None:
    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @app.post("/api/search", response_model=SearchResponse)
    def run_search(
        body: SearchRequest,
        request: Request,
        settings: SettingsDep,
        repository: RepositoryDep,
        user_id: UserDep,
    ) -> SearchResponse:
        query = (body.query or "").strip()
        if not query:
            raise InputValidationError("Query is required")
        try:
            settings.validate_for_search()
        except ValueError as error:
            raise ProspectingError(str(error), code="config_error") from error

        provider = request.app.state.provider_factory(settings)
        try:
            summary = SearchOrchestrator(
                search_settings=settings.search,
                repository=repository,
                provider=provider,
            ).run_cycle(
                SearchCycleRequest(
                    query=query,
                    user_id=user_id,
                    reset_pagination=body.resetPagination,
                ),
            )
        finally:
            close = getattr(provider, "close", None)
            if callable(close):
                close()

        if summary.all_pages_failed:
            raise SearchProviderError(
                f"Search provider request failed: {summary.provider_error}",
            )
        return SearchResponse(
            query=summary.query,
            totalResults=len(summary.results),
            requestsMade=summary.requests_made,
            totalRequestsMadeOverall=summary.total_requests_made_overall,
            nextStartPosition=summary.next_start_position,
            failedPages=summary.failed_pages,
            results=[SearchResultOut.from_view(view) for view in summary.results],
        )

    @app.get("/api/search", response_model=None)
    def list_search(
        repository: RepositoryDep,
        user_id: UserDep,
        query: str | None = None,
    ) -> QueryResultsResponse | HistoryResponse:
        if query is not None and query.strip():
            cleaned = query.strip()
            cursor = PaginationCursorManager(repository=repository).get(cleaned, user_id)
            return QueryResultsResponse(
                results=[
                    SearchResultOut.from_view(view)
                    for view in repository.find_by_query(cleaned, user_id)
                ],
                query=cleaned,
                pagination=CursorOut.from_cursor(cursor) if cursor else None,
            )
        return HistoryResponse(
            history=[
                HistoryEntryOut.from_entry(entry) for entry in repository.search_history(user_id)
            ],
            totalCount=repository.count(user_id),
        )

    @app.get("/api/search/pagination", response_model=PaginationStatesResponse)
    def list_pagination(repository: RepositoryDep, user_id: UserDep) -> PaginationStatesResponse:
        cursors = PaginationCursorManager(repository=repository).list_for_user(user_id)
        return PaginationStatesResponse(
            paginationStates=[CursorOut.from_cursor(cursor) for cursor in cursors],
        )

    @app.delete("/api/search", response_model=MessageResponse)
    def delete_search(
        body: DeleteSearchRequest,
        repository: RepositoryDep,
        user_id: UserDep,
    ) -> MessageResponse:
        query = (body.query or "").strip()
        if not query:
            raise InputValidationError("Query is required")
        deleted = repository.delete_query_with_cursor(query, user_id)
        logger.info("Deleted %d results for query %r.", deleted, query)
        return MessageResponse(message=f"Deleted {deleted} results for query {query!r}")

    @app.patch("/api/search", response_model=MessageResponse)
    def update_status(
        body: StatusUpdateRequest,
        repository: RepositoryDep,
        user_id: UserDep,
    ) -> MessageResponse:
        tracker = ProcessingStateTracker(repository=repository)
        if body.id is not None:
            tracker.mark_manual(body.id, body.processed, user_id)
            return MessageResponse(message="Status updated successfully")
        query = (body.query or "").strip()
        if query:
            updated = tracker.mark_manual_by_query(query, body.processed, user_id)
            return MessageResponse(message=f"Updated {updated} results")
        raise InputValidationError("Either id or query is required")

    @app.get("/api/search/result/{result_id}", response_model=ResultResponse)
    def get_result(result_id: int, repository: RepositoryDep, user_id: UserDep) -> ResultResponse:
        view = repository.find_by_id(result_id, user_id=user_id)
        if view is None:
            raise ResultNotFoundError("Result not found")
        return ResultResponse(result=SearchResultOut.from_view(view))

    @app.post("/api/pages", response_model=ManualPageResponse)
    def add_page(
        body: ManualPageRequest,
        repository: RepositoryDep,
        user_id: UserDep,
    ) -> ManualPageResponse:
        view = ManualIntakeService(repository=repository).add_page(
            link=body.link or "",
            search_query=body.search_query or "",
            user_id=user_id,
            title=body.title,
            snippet=body.snippet,
            category=body.category,
        )
        return ManualPageResponse(result=SearchResultOut.from_view(view))

    @app.post("/api/update-metadata", response_model=MetadataUpdateResponse)
    def update_metadata(
        body: Annotated[Any, Body()],
        repository: RepositoryDep,
        user_id: UserDep,
    ) -> MetadataUpdateResponse:
        report = MetadataService(repository=repository).apply(body, user_id)
        total = report.updated + len(report.errors)
        return MetadataUpdateResponse(
            message=f"Successfully updated {report.updated} records",
            updated=report.updated,
            total_requested=total,
            errors=report.errors or None,
        )

    @app.post(
        "/api/save",
        response_model=ScanCallbackResponse,
        dependencies=[Depends(require_callback_key)],
    )
    def save_scan_result(
        body: ScanCallbackRequest,
        repository: RepositoryDep,
    ) -> ScanCallbackResponse:
        if not body.userId or not body.url or not body.status:
            raise InputValidationError("userId, url and status are required")
        resolution = ProcessingStateTracker(repository=repository).handle_scan_callback(
            ScanCallback(
                user_id=body.userId,
                url=body.url,
                status=body.status,
                data=body.data,
                error=body.error,
                result_id=body.resultId,
            ),
        )
        return ScanCallbackResponse(
            resultId=resolution.result_id,
            status=resolution.status.name.lower(),
            scan_details_stored=resolution.scan_details_stored,
            timestamp=utc_now(),
        )

    @app.post("/api/results/{result_id}/scan", response_model=ResultResponse)
    def dispatch_scan(
        result_id: int,
        request: Request,
        settings: SettingsDep,
        repository: RepositoryDep,
        user_id: UserDep,
    ) -> ResultResponse:
        try:
            settings.validate_for_scan()
        except ValueError as error:
            raise ProspectingError(str(error), code="config_error") from error

        tracker = ProcessingStateTracker(repository=repository)
        with request.app.state.scan_client_factory(settings) as client:
            view = ScanDispatchService(tracker=tracker, client=client).dispatch(result_id, user_id)
        return ResultResponse(result=SearchResultOut.from_view(view))

    @app.get("/api/public/unprocessed", response_model=ClaimResponse)
    def claim_unprocessed(repository: RepositoryDep) -> ClaimResponse:
        view = repository.claim_next_unprocessed()
        if view is None:
            raise ResultNotFoundError("No unprocessed results found")
        logger.info("Claimed result %d for external processing.", view.id)
        return ClaimResponse(result=SearchResultOut.from_view(view))

    @app.post("/api/public/unprocessed", response_model=ClaimResponse)
    def resolve_claimed(body: ClaimResolveRequest, repository: RepositoryDep) -> ClaimResponse:
        if body.id is None:
            raise InputValidationError("id is required")
        try:
            outcome = ScanOutcome(body.status)
        except ValueError as error:
            raise InputValidationError(
                f"status must be 'completed' or 'error' (got {body.status!r})",
            ) from error

        error_payload = None
        if outcome == ScanOutcome.ERROR:
            error_payload = {
                "type": "external_processing_error",
                "message": body.error or "Reported as failed by external processor",
                "timestamp": utc_now().isoformat(),
            }
        view = ProcessingStateTracker(repository=repository).resolve(
            body.id,
            outcome,
            error=error_payload,
            scan_details=body.data,
        )
        return ClaimResponse(result=SearchResultOut.from_view(view))

    @app.get("/api/analytics", response_model=AnalyticsResponse)
    def analytics(repository: RepositoryDep, user_id: UserDep) -> AnalyticsResponse:
        return AnalyticsResponse.from_summary(repository.summarize(user_id))
