import logging
import re
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import InvalidInputError, NotFoundError
from app.models import Product
from app.schemas import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)

_PRODUCT_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def is_valid_product_id(product_id: str | None) -> bool:
    return bool(product_id) and _PRODUCT_ID_RE.match(product_id) is not None


def _require_valid_id(product_id: str) -> None:
    if not is_valid_product_id(product_id):
        raise InvalidInputError(f"Invalid product id: {product_id!r}")


async def create_product(db: AsyncSession, payload: ProductCreate) -> Product:
    product = Product(name=payload.name, price=payload.price, stock=payload.stock)
    db.add(product)
    await db.commit()
    await db.refresh(product)
    logger.info("Created product %s", product.id)
    return product


async def list_products(db: AsyncSession) -> list[Product]:
    result = await db.execute(select(Product).order_by(Product.created_at.asc()))
    return list(result.scalars().all())


async def get_product(db: AsyncSession, product_id: str) -> Product:
    _require_valid_id(product_id)
    result = await db.execute(select(Product).where(Product.id == product_id))
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFoundError("Not found")
    return product


async def update_product(
    db: AsyncSession, product_id: str, payload: ProductUpdate
) -> Product:
    product = await get_product(db, product_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(product, field, value)
    await db.commit()
    await db.refresh(product)
    logger.info("Updated product %s", product_id)
    return product


async def delete_product(db: AsyncSession, product_id: str) -> None:
    product = await get_product(db, product_id)
    await db.delete(product)
    await db.commit()
    logger.info("Deleted product %s", product_id)


async def fetch_many(db: AsyncSession, product_ids: Iterable[str]) -> list[Product]:
    """
    Batch lookup for the recently-viewed list.
    Returns only products that still exist, in no particular order.
    Malformed ids are skipped rather than rejected.
    """
    valid_ids = {pid for pid in product_ids if is_valid_product_id(pid)}
    if not valid_ids:
        return []
    result = await db.execute(select(Product).where(Product.id.in_(valid_ids)))
    return list(result.scalars().all())
