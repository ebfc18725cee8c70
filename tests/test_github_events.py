import httpx
import pytest

from app.services.github_events import GitHubEventsClient, RawEvent, parse_event, parse_events

SAMPLE_EVENTS = [
    {
        "type": "PushEvent",
        "repo": {"name": "octocat/Hello-World"},
        "payload": {"ref": "refs/heads/feature/login"},
    },
    {"type": "WatchEvent", "repo": {"name": "octocat/Spoon-Knife"}, "payload": {}},
    {"type": "PublicEvent"},
]


class TestParseEvent:
    def test_branch_is_last_ref_segment(self):
        assert parse_event(SAMPLE_EVENTS[0]) == RawEvent(
            type="PushEvent", repo="octocat/Hello-World", branch="login"
        )

    def test_no_ref_means_no_branch(self):
        assert parse_event(SAMPLE_EVENTS[1]).branch is None

    def test_missing_repo_and_payload(self):
        assert parse_event(SAMPLE_EVENTS[2]) == RawEvent(type="PublicEvent")

    def test_parse_events_skips_non_objects(self):
        assert len(parse_events(SAMPLE_EVENTS + ["junk", 3])) == 3

    def test_parse_events_non_list(self):
        assert parse_events({"message": "Not Found"}) == []


def _client_for(handler) -> GitHubEventsClient:
    return GitHubEventsClient(
        base_url="https://api.github.test", transport=httpx.MockTransport(handler)
    )


class TestGitHubEventsClient:
    @pytest.mark.asyncio
    async def test_fetch_events_ok(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            return httpx.Response(200, json=SAMPLE_EVENTS)

        client = _client_for(handler)
        events = await client.fetch_events("octocat")
        await client.close()

        assert seen["path"] == "/users/octocat/events"
        assert [e.type for e in events] == ["PushEvent", "WatchEvent", "PublicEvent"]

    @pytest.mark.asyncio
    async def test_non_200_returns_none(self):
        client = _client_for(lambda request: httpx.Response(404, json={"message": "Not Found"}))
        assert await client.fetch_events("ghost") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_transport_error_returns_none(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        client = _client_for(handler)
        assert await client.fetch_events("octocat") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_token_sent_as_bearer(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[])

        client = GitHubEventsClient(
            base_url="https://api.github.test",
            token="s3cret",
            transport=httpx.MockTransport(handler),
        )
        assert await client.fetch_events("octocat") == []
        await client.close()
        assert seen["auth"] == "Bearer s3cret"
