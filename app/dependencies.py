from fastapi import Request

from app.cache import CachePort
from app.services.github_events import EventSource


def get_cache(request: Request) -> CachePort:
    return request.app.state.cache


def get_event_source(request: Request) -> EventSource:
    return request.app.state.event_source
