"""
GitHub activity digest.

Folds a user's newest-first event stream into one readable line per
(event type, repository) pair and caches the result for a day.

Two quirks of the output are intentional and callers depend on them:
- the count in a line is the running count for that event *type* at the
  point the line was rendered, not a per-repository total;
- when a (type, repo) pair repeats, the line keeps the position of its first
  occurrence but the text of its last.
"""
import json
import logging
from typing import Iterable, Sequence

from app.cache import CachePort
from app.config import settings
from app.errors import InvalidInputError, NotFoundError
from app.services.github_events import RawEvent

logger = logging.getLogger(__name__)

DIGEST_KEY_PREFIX = "github:useraction:"
UNKNOWN_REPO = "unknown"


def digest_key(subject_id: str) -> str:
    return f"{DIGEST_KEY_PREFIX}{subject_id}"


def render_message(event_type: str, repo: str, branch: str | None, count: int) -> str:
    """Render one event. event_type and repo must already be lower-cased."""
    branch_note = f" (branch: {branch})" if branch else ""

    if event_type == "pushevent":
        if count > 1:
            return f"Pushed code to {repo} {count} times"
        return f"Pushed code to {repo}{branch_note}"

    if event_type == "watchevent":
        if count > 1:
            return f"Starred repository {repo} ({count} times)"
        return f"Starred repository {repo}"

    if event_type == "publicevent":
        if count > 1:
            return f"Made repository {repo} public ({count} times)"
        return f"Made repository {repo} public"

    if event_type == "issuesevent":
        if count > 1:
            return f"Found issue in {repo} ({count} times)"
        return f"Found issue in {repo}{branch_note}"

    return f"Performed {event_type} on {repo}"


def build_digest(raw_events: Iterable[RawEvent]) -> list[str]:
    type_counts: dict[str, int] = {}
    # dict keeps first-insertion order while letting later events overwrite
    messages: dict[tuple[str, str], str] = {}

    for event in raw_events:
        event_type = event.type.lower()
        repo = (event.repo or UNKNOWN_REPO).lower()

        type_counts[event_type] = type_counts.get(event_type, 0) + 1
        count = type_counts[event_type]

        messages[(event_type, repo)] = render_message(event_type, repo, event.branch, count)

    return list(messages.values())


async def summarize(
    cache: CachePort,
    subject_id: str,
    raw_events: Sequence[RawEvent] | None,
    ttl: int | None = None,
) -> list[str]:
    """
    Build the digest for subject_id and cache it under github:useraction:<subject_id>.
    Raises NotFoundError for an empty stream; nothing is cached in that case.
    The returned list is exactly what was written to the cache.
    """
    if not subject_id or not subject_id.strip():
        raise InvalidInputError("A GitHub username is required")
    if not raw_events:
        raise NotFoundError("No events found for this user.")

    digest = build_digest(raw_events)
    expiry = ttl if ttl is not None else settings.DIGEST_TTL_SECONDS
    await cache.set(digest_key(subject_id), json.dumps(digest), ttl=expiry)
    logger.info(
        "Digest for %s: %d events → %d messages (ttl=%ds)",
        subject_id, len(raw_events), len(digest), expiry,
    )
    return digest


async def cached_digest(cache: CachePort, subject_id: str) -> list[str] | None:
    raw = await cache.get(digest_key(subject_id))
    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("Discarding undecodable cached digest for %s", subject_id)
        return None
    if not isinstance(value, list) or not all(isinstance(m, str) for m in value):
        logger.warning("Discarding malformed cached digest for %s", subject_id)
        return None
    return value
