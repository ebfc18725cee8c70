import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.cache import build_cache
from app.config import settings
from app.database import create_all_tables, engine
from app.errors import ServiceError, TransientIOError
from app.routers.github import router as github_router
from app.routers.health import router as health_router
from app.routers.products import recent_router
from app.routers.products import router as products_router
from app.schemas import ErrorResponse
from app.services.github_events import GitHubEventsClient

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _ensure_sqlite_dir() -> None:
    if engine.dialect.name != "sqlite":
        return
    database = engine.url.database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── STARTUP ──────────────────────────────────────────────────────────────
    _ensure_sqlite_dir()
    await create_all_tables()

    app.state.cache = build_cache(settings)
    app.state.event_source = GitHubEventsClient(
        base_url=settings.GITHUB_API_URL,
        token=settings.GITHUB_TOKEN,
        timeout=settings.GITHUB_TIMEOUT,
    )
    logger.info("%s started (cache backend: %s)", settings.APP_NAME, settings.CACHE_BACKEND)

    yield

    # ── SHUTDOWN ─────────────────────────────────────────────────────────────
    await app.state.event_source.close()
    await app.state.cache.close()
    await engine.dispose()
    logger.info("%s stopped", settings.APP_NAME)


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(products_router)
app.include_router(recent_router)
app.include_router(github_router)
app.include_router(health_router)


# ── Request logging middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s → %d [%.1fms]",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


def _error(status_code: int, message: str, retryable: bool = False) -> JSONResponse:
    body = ErrorResponse(message=message, retryable=retryable)
    headers = {"Retry-After": "1"} if retryable else None
    return JSONResponse(body.model_dump(), status_code=status_code, headers=headers)


# ── Service errors ────────────────────────────────────────────────────────────
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    retryable = isinstance(exc, TransientIOError)
    if retryable:
        logger.warning("Retryable failure on %s: %s", request.url.path, exc.message)
    return _error(exc.status_code, exc.message, retryable=retryable)


@app.exception_handler(OperationalError)
async def database_error_handler(request: Request, exc: OperationalError):
    logger.error("Database unavailable on %s: %s", request.url.path, exc)
    return _error(503, "Database unavailable", retryable=True)


# ── Request validation ────────────────────────────────────────────────────────
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = [
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    ]
    return _error(422, "; ".join(problems) or "Invalid request")


# ── 404 for unknown routes ────────────────────────────────────────────────────
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return _error(404, "Route not found")
    return _error(exc.status_code, str(exc.detail))


# ── Global 500 handler ────────────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
    return _error(500, str(exc))
