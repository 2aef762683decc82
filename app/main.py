import asyncio
import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root no matter where uvicorn is started from
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlmodel import Session

from app.api.auth import router as auth_router
from app.api.live import router as live_router
from app.api.videos import router as videos_router
from app.core.config import is_moderation_enabled, is_openai_configured, settings
from app.core.database import engine, init_db
from app.core.errors import AppError, PolicyViolation
from app.core.rate_limit import limiter
from app.logging import setup_logging
from app.models import ErrorLog
from app.services.job_store import JobStore
from app.services.live_updates import ChannelHub, LiveUpdateDispatcher
from app.services.poller import JobPoller, JobTracker, Sleep
from app.services.provider import OpenAIVideoProvider, VideoProvider
from app.services.session_registry import SessionRegistry
from app.services.videos import VideoService

setup_logging(level=settings.log_level)
log = logging.getLogger("videogen")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


def _error_response(request: Request, status_code: int, message: str, **extra) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {"error": message, "status_code": status_code, **extra}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _jsonable_errors(errs: list) -> list:
    # input/ctx may hold bytes or exception instances that JSONResponse cannot encode
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in errs]


def _wire_services(app: FastAPI, provider: VideoProvider | None, sleep: Sleep | None) -> None:
    """One registry, hub and tracker per process, shared through app.state."""
    registry = SessionRegistry()
    hub = ChannelHub()
    dispatcher = LiveUpdateDispatcher(registry, hub)
    store = JobStore(engine)
    provider = provider or OpenAIVideoProvider()
    poller = JobPoller(provider, store, dispatcher, sleep=sleep or asyncio.sleep)
    tracker = JobTracker(poller)

    app.state.registry = registry
    app.state.hub = hub
    app.state.dispatcher = dispatcher
    app.state.tracker = tracker
    app.state.videos = VideoService(provider, store, tracker)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            log.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.detail)
        if isinstance(exc, PolicyViolation):
            return _error_response(
                request,
                exc.status_code,
                exc.detail,
                moderation={"allowed": False, "flagged": True, "categories": exc.categories},
            )
        return _error_response(request, exc.status_code, exc.detail)

    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return _error_response(request, 429, "Too many requests", detail=str(exc.detail))

    @app.exception_handler(RequestValidationError)
    def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errs = exc.errors()
        log.info("Request validation error (422): path=%s method=%s", request.url.path, request.method)
        first = errs[0].get("msg") if errs else None
        return _error_response(request, 422, first or "Invalid request.", detail=_jsonable_errors(errs))

    @app.exception_handler(HTTPException)
    def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))

    @app.exception_handler(Exception)
    def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.exception("Unhandled exception: path=%s %s", request.url.path, exc)
        try:
            with Session(engine) as db:
                db.add(ErrorLog(
                    endpoint=request.url.path,
                    method=request.method,
                    error_message=str(exc)[:2000],
                    stack_trace=traceback.format_exc()[:10000],
                ))
                db.commit()
        except Exception as e:
            log.warning("ErrorLog write failed: %s", e)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(provider: VideoProvider | None = None, sleep: Sleep | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db()
        log.info("OPENAI_API_KEY loaded: %s", "yes" if is_openai_configured() else "NO (set OPENAI_API_KEY=sk-... in .env)")
        log.info("Prompt moderation: %s", settings.openai_moderation_model or "disabled")
        yield
        await app.state.tracker.shutdown()

    app = FastAPI(
        title="Video Generation API",
        description="Prompt-to-video jobs with live progress updates",
        lifespan=lifespan,
    )
    app.state.limiter = limiter
    _wire_services(app, provider, sleep)
    _register_error_handlers(app)

    @app.middleware("http")
    async def request_id_and_latency(request: Request, call_next):
        request.state.request_id = str(uuid.uuid4())
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request.state.request_id
        log.info(
            "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
            request.state.request_id,
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
        )
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(auth_router)
    app.include_router(videos_router)
    app.include_router(live_router)

    @app.get("/health")
    def health(request: Request):
        database = "ok"
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            log.warning("Health DB check failed: %s", e)
            database = "error"
        return {
            "status": "ok",
            "openai_configured": is_openai_configured(),
            "moderation_enabled": is_moderation_enabled(),
            "database": database,
            "active_jobs": request.app.state.tracker.active_count,
            "live_channels": len(request.app.state.registry),
        }

    return app


app = create_app()
