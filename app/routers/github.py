import logging

from fastapi import APIRouter, Depends, Query

from app.cache import CachePort
from app.dependencies import get_cache, get_event_source
from app.schemas import DigestResponse
from app.services import activity_digest
from app.services.github_events import EventSource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/github", tags=["github"])


@router.get("/{username}", response_model=DigestResponse)
async def user_activity(
    username: str,
    refresh: bool = Query(default=False),
    cache: CachePort = Depends(get_cache),
    events: EventSource = Depends(get_event_source),
) -> dict:
    if not refresh:
        cached = await activity_digest.cached_digest(cache, username)
        if cached is not None:
            logger.debug("Serving cached digest for %s", username)
            return {"success": True, "message": cached}

    raw_events = await events.fetch_events(username)
    digest = await activity_digest.summarize(cache, username, raw_events)
    return {"success": True, "message": digest}
