"""
GitHub public events client.
Fetches a user's event stream (newest first) and flattens each event into
the three fields the activity digest needs.
"""
import logging
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawEvent:
    type: str
    repo: str | None = None
    branch: str | None = None


class EventSource(Protocol):
    async def fetch_events(self, username: str) -> list[RawEvent] | None: ...


def _branch_from_ref(ref: Any) -> str | None:
    if not isinstance(ref, str) or not ref:
        return None
    # "refs/heads/main" → "main"
    return ref.split("/")[-1] or None


def parse_event(item: dict[str, Any]) -> RawEvent:
    repo = item.get("repo") or {}
    payload = item.get("payload") or {}
    return RawEvent(
        type=str(item.get("type") or ""),
        repo=repo.get("name") if isinstance(repo, dict) else None,
        branch=_branch_from_ref(payload.get("ref")) if isinstance(payload, dict) else None,
    )


def parse_events(payload: Any) -> list[RawEvent]:
    if not isinstance(payload, list):
        return []
    return [parse_event(item) for item in payload if isinstance(item, dict)]


class GitHubEventsClient:
    def __init__(
        self,
        base_url: str = "https://api.github.com",
        token: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def fetch_events(self, username: str) -> list[RawEvent] | None:
        """Return the user's events, or None when GitHub can't be reached or refuses."""
        try:
            response = await self._client.get(f"/users/{quote(username, safe='')}/events")
        except httpx.HTTPError as exc:
            logger.warning("GitHub events fetch failed for %s: %s", username, exc)
            return None

        if response.status_code != 200:
            logger.warning(
                "GitHub events fetch for %s returned %d", username, response.status_code
            )
            return None

        try:
            data = response.json()
        except ValueError as exc:
            logger.warning("GitHub returned invalid JSON for %s: %s", username, exc)
            return None

        events = parse_events(data)
        logger.debug("Fetched %d events for %s", len(events), username)
        return events

    async def close(self) -> None:
        await self._client.aclose()
