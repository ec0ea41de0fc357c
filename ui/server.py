"""FastAPI application serving chart data for the query dashboard."""

from __future__ import annotations

import asyncio
import logging
import threading
import webbrowser
from contextlib import asynccontextmanager
from typing import Optional

import requests
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from uvicorn import Config, Server

from tsquery.config import DashboardSettings, load_settings, setup_logging
from tsquery.core import BACKENDS, ChartState
from tsquery.dispatch import build_dispatcher
from tsquery.errors import InvalidQueryError
from tsquery.normalize import TABULAR_MODES
from tsquery.pipeline import DEFAULT_QUERIES, QuerySession, QuerySpec, SessionRegistry
from tsquery.window import infer_preset

from .charts import chart_response, status_for
from .schemas import QueryRequest, RefreshRequest, SessionResponse

LOGGER = logging.getLogger(__name__)

router = APIRouter()


def build_spec(settings: DashboardSettings, request: QueryRequest) -> QuerySpec:
    """Fill a ``QuerySpec`` from request fields, falling back to configured defaults."""
    backend = (request.backend or settings.query.default_backend).strip().lower()
    if backend not in BACKENDS:
        raise InvalidQueryError(f"Unknown backend '{request.backend}'; expected one of {', '.join(BACKENDS)}")
    mode = (request.mode or settings.query.tabular_mode).strip().lower()
    if mode not in TABULAR_MODES:
        raise InvalidQueryError(f"Unsupported tabular mode '{request.mode}'")
    query_text = request.query if request.query is not None else DEFAULT_QUERIES[backend]
    step = request.step if request.step is not None else settings.query.default_step
    return QuerySpec(
        backend=backend,
        query=query_text,
        range=infer_preset(request.range, request.start, request.end) or settings.query.default_range,
        start=request.start,
        end=request.end,
        step=step,
        tabular_mode=mode,
    )


def _chart_json(state: ChartState, status_code: Optional[int] = None, **meta) -> JSONResponse:
    payload = chart_response(state, **meta)
    return JSONResponse(payload.model_dump(), status_code=status_code or status_for(state))


def _registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def _session_or_404(request: Request, session_id: str) -> QuerySession:
    try:
        return _registry(request).get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'") from None


def _session_payload(session: QuerySession) -> dict:
    chart = chart_response(session.state, backend=session.spec.backend)
    return SessionResponse(id=session.id, refresh_s=session.refresh.interval_s, chart=chart).model_dump()


@router.get("/ui/api/query", response_class=JSONResponse)
async def api_query(
    request: Request,
    backend: Optional[str] = Query(None),
    query: Optional[str] = Query(None),
    range_: Optional[str] = Query(None, alias="range"),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    step: Optional[float] = Query(None),
    mode: Optional[str] = Query(None),
) -> JSONResponse:
    settings: DashboardSettings = request.app.state.settings
    body = QueryRequest(
        backend=backend or settings.query.default_backend,
        query=query,
        range=range_,
        start=start,
        end=end,
        step=step,
        mode=mode,
    )
    try:
        spec = build_spec(settings, body)
    except InvalidQueryError as exc:
        return _chart_json(ChartState.failure(str(exc), error_type=type(exc).__name__))

    session = QuerySession(
        spec,
        request.app.state.dispatcher,
        scheduler=request.app.state.scheduler,
    )
    state = await session.run()
    return _chart_json(state, backend=spec.backend)


@router.post("/ui/api/sessions", response_class=JSONResponse)
async def create_session(request: Request, body: QueryRequest) -> JSONResponse:
    settings: DashboardSettings = request.app.state.settings
    try:
        spec = build_spec(settings, body)
    except InvalidQueryError as exc:
        return _chart_json(ChartState.failure(str(exc), error_type=type(exc).__name__))

    session = _registry(request).create(spec)
    await session.run()
    session.configure_refresh(body.refresh_s)
    LOGGER.info("Created session %s (%s, refresh %.1fs)", session.id, spec.backend, body.refresh_s)
    return JSONResponse(_session_payload(session), status_code=201)


@router.get("/ui/api/sessions/{session_id}", response_class=JSONResponse)
async def get_session(request: Request, session_id: str) -> JSONResponse:
    session = _session_or_404(request, session_id)
    return JSONResponse(_session_payload(session))


@router.put("/ui/api/sessions/{session_id}/refresh", response_class=JSONResponse)
async def set_refresh(request: Request, session_id: str, body: RefreshRequest) -> JSONResponse:
    session = _session_or_404(request, session_id)
    session.configure_refresh(body.interval_s)
    return JSONResponse(_session_payload(session))


@router.delete("/ui/api/sessions/{session_id}", status_code=204)
async def delete_session(request: Request, session_id: str) -> None:
    _session_or_404(request, session_id)
    _registry(request).remove(session_id)
    LOGGER.info("Removed session %s", session_id)


def create_app(
    settings: Optional[DashboardSettings] = None,
    http_session: Optional[requests.Session] = None,
) -> FastAPI:
    """Build the API; backends, scheduler and sessions live for the app lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or load_settings()
        scheduler = AsyncIOScheduler()
        scheduler.start()
        dispatcher = build_dispatcher(resolved, session=http_session)
        app.state.settings = resolved
        app.state.dispatcher = dispatcher
        app.state.scheduler = scheduler
        app.state.registry = SessionRegistry(dispatcher, scheduler=scheduler)
        try:
            yield
        finally:
            app.state.registry.close_all()
            scheduler.shutdown(wait=False)

    application = FastAPI(title="tsquery dashboard API", lifespan=lifespan)
    application.include_router(router)

    @application.get("/", include_in_schema=False)
    async def root_redirect() -> RedirectResponse:
        return RedirectResponse(url="/docs")

    return application


app = create_app()


def start_ui(
    host: str,
    port: int,
    open_browser: bool = True,
    settings: Optional[DashboardSettings] = None,
) -> None:
    """Start the FastAPI server via uvicorn, logging as configured in ``settings.logging``."""

    resolved = settings or load_settings()
    setup_logging(resolved.logging.level, resolved.logging.file)
    config = Config(app=create_app(resolved), host=host, port=port, log_level="info")
    server = Server(config=config)

    if open_browser:
        url = f"http://{host}:{port}/docs"
        timer = threading.Timer(1.0, webbrowser.open, args=(url,))
        timer.daemon = True
        timer.start()

    asyncio.run(server.serve())
