"""Client for Reddit's public JSON listings."""

import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx
import structlog

from .models import RawPost

logger = structlog.get_logger()

REDDIT_BASE_URL = "https://www.reddit.com"
DEFAULT_USER_AGENT = "reddit-deals/0.1 (deal aggregation bot)"
SORT_OPTIONS = ("hot", "new", "top", "rising")


class ClientError(Exception):
    """Base exception for feed client errors."""
    pass


class RateLimitError(ClientError):
    """Raised when Reddit rate limits the client."""
    pass


class RedditClient:
    """Fetches posts and comments from subreddits."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        base_url: str = REDDIT_BASE_URL,
        requests_per_minute: int = 30,
        burst: int = 5,
        timeout_seconds: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.user_agent = user_agent
        self.base_url = base_url.rstrip('/')
        self.timeout_seconds = timeout_seconds
        self.client = client
        self._owns_client = client is None

        # Rate limiting
        self.request_times: List[float] = []
        self.requests_per_minute = requests_per_minute
        self.burst_limit = burst
        self._rate_lock: Optional[asyncio.Lock] = None

        # Statistics
        self.requests_made = 0
        self.errors = 0

    async def __aenter__(self):
        """Async context manager entry."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                headers={'User-Agent': self.user_agent},
                timeout=self.timeout_seconds,
                follow_redirects=True,
            )
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._owns_client and self.client:
            await self.client.aclose()
            self.client = None

    def _window_wait(self, now: float) -> float:
        """Seconds to wait before the next request fits both windows."""
        # Remove requests older than 1 minute
        self.request_times = [t for t in self.request_times if now - t < 60]

        if len(self.request_times) >= self.requests_per_minute:
            sleep_time = 60 - (now - self.request_times[0])
            if sleep_time > 0:
                logger.info("Rate limit reached", sleep_seconds=round(sleep_time, 1))
                return sleep_time

        recent_requests = [t for t in self.request_times if now - t < 10]
        if len(recent_requests) >= self.burst_limit:
            sleep_time = 10 - (now - recent_requests[0])
            if sleep_time > 0:
                logger.info("Burst limit reached", sleep_seconds=round(sleep_time, 1))
                return sleep_time

        return 0

    async def _rate_limit(self) -> None:
        """Enforce rate limiting.

        Concurrent callers queue on a lock held across the sleep, and the
        windows are checked again after every wake-up.
        """
        if self._rate_lock is None:
            self._rate_lock = asyncio.Lock()

        async with self._rate_lock:
            sleep_time = self._window_wait(time.time())
            while sleep_time > 0:
                await asyncio.sleep(sleep_time)
                sleep_time = self._window_wait(time.time())

            self.request_times.append(time.time())

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a JSON document with rate limiting and error handling."""
        if self.client is None:
            raise ClientError("Client is not open; use 'async with RedditClient()'")

        await self._rate_limit()
        url = f"{self.base_url}{path}"

        try:
            response = await self.client.get(url, params=params)
            response.raise_for_status()
            self.requests_made += 1
            return response.json()
        except httpx.HTTPStatusError as e:
            self.errors += 1
            if e.response.status_code == 429:
                raise RateLimitError(f"Rate limited by {url}")
            raise ClientError(f"HTTP {e.response.status_code}: {url}")
        except (httpx.HTTPError, ValueError) as e:
            self.errors += 1
            raise ClientError(f"Failed to fetch {url}: {str(e)}")

    async def fetch_posts(self, subreddit: str, sort: str = "hot", limit: int = 25) -> List[RawPost]:
        """Fetch the current listing of a subreddit."""
        if sort not in SORT_OPTIONS:
            raise ClientError(f"Unsupported sort: {sort}")

        data = await self._get_json(
            f"/r/{subreddit}/{sort}.json",
            params={'limit': limit, 'raw_json': 1},
        )

        posts = []
        for child in data.get('data', {}).get('children', []):
            if child.get('kind') != 't3':
                continue
            try:
                posts.append(RawPost.from_listing_child(child))
            except (KeyError, ValueError) as e:
                logger.warning("Skipping malformed post", subreddit=subreddit, error=str(e))

        logger.info("Fetched posts", subreddit=subreddit, sort=sort, count=len(posts))
        return posts

    async def fetch_comments(self, post_id: str, limit: int = 20) -> List[str]:
        """Fetch the bodies of a post's top-level comments."""
        data = await self._get_json(
            f"/comments/{post_id}.json",
            params={'limit': limit, 'depth': 1, 'raw_json': 1},
        )

        if not isinstance(data, list) or len(data) < 2:
            return []

        bodies = []
        for child in data[1].get('data', {}).get('children', []):
            if child.get('kind') != 't1':
                continue
            body = child.get('data', {}).get('body')
            if body:
                bodies.append(body)

        return bodies
