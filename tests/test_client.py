"""Tests for the Reddit listing client."""

import asyncio

import httpx
import pytest

from reddit_deals import client as client_module
from reddit_deals.client import ClientError, RateLimitError, RedditClient


LISTING = {
    "kind": "Listing",
    "data": {
        "children": [
            {
                "kind": "t3",
                "data": {
                    "id": "a1",
                    "title": "Kindle Paperwhite $99 (was $149)",
                    "selftext": "",
                    "permalink": "/r/deals/comments/a1/kindle/",
                    "url": "https://www.amazon.com/dp/B08KTZ8249",
                    "is_self": False,
                    "score": 120,
                    "thumbnail": "default",
                },
            },
            {"kind": "t5", "data": {"id": "sub", "display_name": "deals"}},
            {
                "kind": "t3",
                "data": {
                    "id": "a2",
                    "title": "Weekly discussion thread",
                    "selftext": None,
                    "permalink": "/r/deals/comments/a2/weekly/",
                    "is_self": True,
                },
            },
        ]
    },
}

COMMENTS = [
    {"kind": "Listing", "data": {"children": [{"kind": "t3", "data": {"id": "a1"}}]}},
    {
        "kind": "Listing",
        "data": {
            "children": [
                {"kind": "t1", "data": {"body": "Link: https://www.amazon.com/dp/B08KTZ8249"}},
                {"kind": "t1", "data": {"body": ""}},
                {"kind": "more", "data": {"children": ["x", "y"]}},
                {"kind": "t1", "data": {"body": "Thanks OP"}},
            ]
        },
    },
]


def run_client(handler, action):
    async def run():
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport) as http_client:
            client = RedditClient(client=http_client, requests_per_minute=100, burst=100)
            return await action(client)

    return asyncio.run(run())


def test_fetch_posts():
    """Test fetching a subreddit listing."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen['path'] = request.url.path
        seen['params'] = dict(request.url.params)
        return httpx.Response(200, json=LISTING)

    posts = run_client(handler, lambda client: client.fetch_posts("deals", sort="new", limit=10))

    assert seen['path'] == "/r/deals/new.json"
    assert seen['params'] == {'limit': '10', 'raw_json': '1'}
    assert [p.id for p in posts] == ["a1", "a2"]
    assert posts[0].url == "https://www.amazon.com/dp/B08KTZ8249"
    assert posts[0].is_self is False
    assert posts[1].selftext == ""


def test_fetch_posts_rejects_unknown_sort():
    """Test validation of the listing sort."""
    with pytest.raises(ClientError):
        run_client(
            lambda request: httpx.Response(200, json=LISTING),
            lambda client: client.fetch_posts("deals", sort="best"),
        )


def test_fetch_comments():
    """Test reading top-level comment bodies."""
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/comments/a1.json"
        return httpx.Response(200, json=COMMENTS)

    comments = run_client(handler, lambda client: client.fetch_comments("a1"))

    assert comments == ["Link: https://www.amazon.com/dp/B08KTZ8249", "Thanks OP"]


def test_fetch_comments_unexpected_shape():
    """Test tolerating responses without a comment listing."""
    comments = run_client(
        lambda request: httpx.Response(200, json={"error": "gone"}),
        lambda client: client.fetch_comments("a1"),
    )
    assert comments == []


def test_rate_limited_response():
    """Test that HTTP 429 raises RateLimitError."""
    with pytest.raises(RateLimitError):
        run_client(
            lambda request: httpx.Response(429),
            lambda client: client.fetch_posts("deals"),
        )


def test_server_error():
    """Test that other HTTP errors raise ClientError."""
    with pytest.raises(ClientError) as exc_info:
        run_client(
            lambda request: httpx.Response(500),
            lambda client: client.fetch_posts("deals"),
        )
    assert "HTTP 500" in str(exc_info.value)


def test_invalid_json():
    """Test that malformed bodies raise ClientError."""
    with pytest.raises(ClientError):
        run_client(
            lambda request: httpx.Response(200, text="<html>not json</html>"),
            lambda client: client.fetch_posts("deals"),
        )


def test_client_must_be_opened():
    """Test using the client outside its context manager."""
    with pytest.raises(ClientError):
        asyncio.run(RedditClient().fetch_posts("deals"))


def test_request_statistics():
    """Test request and error counters."""
    async def action(client):
        await client.fetch_posts("deals")
        return client

    client = run_client(lambda request: httpx.Response(200, json=LISTING), action)

    assert client.requests_made == 1
    assert client.errors == 0
    assert len(client.request_times) == 1


class FakeClock:
    """Monotonic fake time advanced only by sleeping."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def time(self) -> float:
        return self.now


@pytest.fixture
def fake_clock(monkeypatch):
    clock = FakeClock()
    real_sleep = asyncio.sleep

    async def sleep(seconds):
        clock.now += seconds
        await real_sleep(0)

    monkeypatch.setattr(client_module, "time", clock)
    monkeypatch.setattr(client_module.asyncio, "sleep", sleep)
    return clock


def max_in_window(times, window):
    return max(sum(1 for other in times if t <= other < t + window) for t in times)


def run_concurrent_rate_limit(client, clock, count):
    """Fire concurrent requests and return the time each one was let through."""
    granted = []

    async def request():
        await client._rate_limit()
        granted.append(clock.now)

    async def run():
        await asyncio.gather(*(request() for _ in range(count)))

    asyncio.run(run())
    return granted


def test_burst_limit_with_concurrent_callers(fake_clock):
    """Test that concurrent requests never exceed the burst window."""
    client = RedditClient(requests_per_minute=30, burst=3)

    granted = run_concurrent_rate_limit(client, fake_clock, 12)

    assert len(granted) == 12
    assert max_in_window(granted, 10) <= 3
    assert fake_clock.now > 1000.0


def test_minute_limit_with_concurrent_callers(fake_clock):
    """Test that concurrent requests never exceed the per-minute window."""
    client = RedditClient(requests_per_minute=5, burst=100)

    granted = run_concurrent_rate_limit(client, fake_clock, 11)

    assert len(granted) == 11
    assert max_in_window(granted, 60) <= 5
    assert fake_clock.now >= 1120.0
