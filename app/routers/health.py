import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import CachePort
from app.config import settings
from app.database import get_db
from app.dependencies import get_cache
from app.errors import TransientIOError
from app.models import Product

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "API is running..."


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    cache: CachePort = Depends(get_cache),
) -> JSONResponse:
    # Check DB
    db_status = "ok"
    products_total = 0
    try:
        products_total = (
            await db.execute(select(func.count(Product.id)))
        ).scalar_one()
    except SQLAlchemyError as exc:
        logger.warning("Health check: database error: %s", exc)
        db_status = "error"

    # Check cache
    cache_status = "ok"
    try:
        if not await cache.ping():
            cache_status = "error"
    except TransientIOError:
        cache_status = "error"

    overall_status = "ok"
    if db_status == "error" or cache_status == "error":
        overall_status = "degraded"

    return JSONResponse(
        {
            "status": overall_status,
            "db": db_status,
            "cache": cache_status,
            "cache_backend": settings.CACHE_BACKEND,
            "products_total": products_total,
        },
        status_code=200 if overall_status == "ok" else 503,
    )
