"""
Per-user recently-viewed product list, kept as a Redis list at recent:<user>.
Head is the most recent view; an id appears at most once; length is capped.
"""
import logging
from typing import Awaitable, Callable, Iterable, TypeVar

from app.cache import CachePort
from app.config import settings
from app.errors import InvalidInputError

logger = logging.getLogger(__name__)

RECENT_KEY_PREFIX = "recent:"
GUEST_ACTOR = "guest"

T = TypeVar("T")


def _resolve_capacity(capacity: int | None) -> int:
    limit = settings.RECENT_CAPACITY if capacity is None else capacity
    if limit < 1:
        raise InvalidInputError(f"Capacity must be at least 1, got {limit}")
    return limit


def recent_key(actor_id: str | None) -> str:
    actor = (actor_id or "").strip() or GUEST_ACTOR
    return f"{RECENT_KEY_PREFIX}{actor}"


async def record_access(
    cache: CachePort,
    actor_id: str | None,
    entity_id: str,
    capacity: int | None = None,
) -> None:
    if not entity_id:
        raise InvalidInputError("An entity id is required")
    limit = _resolve_capacity(capacity)
    key = recent_key(actor_id)
    await cache.list_push_unique(key, entity_id, limit)
    logger.debug("Recorded view of %s for %s", entity_id, key)


async def recent_ids(
    cache: CachePort, actor_id: str | None, capacity: int | None = None
) -> list[str]:
    limit = _resolve_capacity(capacity)
    return await cache.list_range(recent_key(actor_id), 0, limit - 1)


async def list_recent(
    cache: CachePort,
    actor_id: str | None,
    fetch_many: Callable[[set[str]], Awaitable[Iterable[T]]],
    id_of: Callable[[T], str] = lambda entity: entity.id,
    capacity: int | None = None,
) -> list[T]:
    """
    Resolve the user's recent ids to entities, most recent first.
    Ids whose entity no longer exists are dropped.
    """
    ids = await recent_ids(cache, actor_id, capacity)
    if not ids:
        return []

    by_id = {id_of(entity): entity for entity in await fetch_many(set(ids))}
    resolved = [by_id[entity_id] for entity_id in ids if entity_id in by_id]
    if len(resolved) < len(ids):
        logger.debug(
            "%d recently viewed ids for %s no longer resolve",
            len(ids) - len(resolved), recent_key(actor_id),
        )
    return resolved
