import logging
from functools import partial

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import CachePort
from app.database import get_db
from app.dependencies import get_cache
from app.schemas import (
    MessageResponse,
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
    RecentlyViewedResponse,
)
from app.services import products as product_store
from app.services import recently_viewed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])
recent_router = APIRouter(prefix="/api/recently-viewed", tags=["recently-viewed"])


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    payload: ProductCreate,
    db: AsyncSession = Depends(get_db),
) -> dict:
    product = await product_store.create_product(db, payload)
    return {"success": True, "data": product}


@router.get("", response_model=ProductListResponse)
async def list_products(db: AsyncSession = Depends(get_db)) -> dict:
    return {"success": True, "data": await product_store.list_products(db)}


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    user_id: str | None = Query(default=None),
    x_user_id: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
    cache: CachePort = Depends(get_cache),
) -> dict:
    product = await product_store.get_product(db, product_id)
    await recently_viewed.record_access(cache, user_id or x_user_id, product.id)
    return {"success": True, "data": product}


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    payload: ProductUpdate,
    db: AsyncSession = Depends(get_db),
) -> dict:
    product = await product_store.update_product(db, product_id, payload)
    return {"success": True, "data": product}


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    await product_store.delete_product(db, product_id)
    return {"success": True, "message": "Deleted"}


@recent_router.get("", response_model=RecentlyViewedResponse)
async def recently_viewed_products(
    user_id: str | None = Query(default=None),
    x_user_id: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
    cache: CachePort = Depends(get_cache),
) -> dict:
    viewed = await recently_viewed.list_recent(
        cache, user_id or x_user_id, partial(product_store.fetch_many, db)
    )
    return {"success": True, "viewed": viewed}
