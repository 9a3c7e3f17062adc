"""Pytest configuration and fixtures."""

import asyncio
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from reddit_deals.images import PageFetcher
from reddit_deals.models import Currency, ParsedDeal, ParserConfig, RawPost


class FakeFetcher(PageFetcher):
    """Serves canned pages and records every request."""

    def __init__(
        self,
        pages: Optional[Dict[str, str]] = None,
        error: Optional[Exception] = None,
        delay: float = 0,
    ):
        self.pages = pages or {}
        self.error = error
        self.delay = delay
        self.calls: List[str] = []

    async def fetch(self, url: str, timeout: float) -> Optional[str]:
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.pages.get(url)


@pytest.fixture
def fake_fetcher():
    """Factory for fake page fetchers."""
    return FakeFetcher


@pytest.fixture
def offline_config():
    """Parser settings that never touch the network."""
    return ParserConfig(fetch_og_images=False)


@pytest.fixture
def sample_post():
    """A link post to a known merchant with a price pair in the title."""
    return RawPost(
        id="abc",
        title="🔥 HUGE DEAL: Sony Headphones $199 (was $299) link in comments",
        selftext="",
        permalink="/r/deals/comments/abc/huge_deal_sony_headphones/",
        url="http://amazon.com/dp/xyz",
        is_self=False,
        score=50,
    )


@pytest.fixture
def discussion_post():
    """A discussion thread that mentions prices and a store link."""
    return RawPost(
        id="disc1",
        title="[Discussion] which laptop should I buy",
        selftext="Options: $999 at https://www.bestbuy.com/site/laptop/123 or $1,099 elsewhere",
        permalink="/r/deals/comments/disc1/discussion/",
        is_self=True,
        score=12,
    )


@pytest.fixture
def chatter_post():
    """A self post with no price, discount or link."""
    return RawPost(
        id="chat1",
        title="Anyone else love this sub?",
        selftext="Just chatting with everyone here",
        permalink="/r/deals/comments/chat1/anyone_else/",
        is_self=True,
        score=3,
    )


@pytest.fixture
def listing_child():
    """A t3 child as returned by Reddit's listing API."""
    return {
        "kind": "t3",
        "data": {
            "id": "t3post",
            "title": "Samsung 990 Pro 2TB SSD ₹14,999 MRP ₹24,999",
            "selftext": "",
            "permalink": "/r/dealsforindia/comments/t3post/samsung_990_pro/",
            "url": "https://www.amazon.in/dp/B0BHJJ9Y77",
            "is_self": False,
            "score": 87,
            "thumbnail": "https://b.thumbs.redditmedia.com/abc.jpg",
            "subreddit": "dealsforindia",
            "created_utc": 1760000000.0,
            "num_comments": 14,
            "preview": {
                "images": [
                    {
                        "source": {
                            "url": "https://external-preview.redd.it/src.jpg?auto=webp&amp;s=1",
                            "width": 1200,
                            "height": 630,
                        },
                        "resolutions": [
                            {"url": "https://external-preview.redd.it/108.jpg?width=108&amp;s=2", "width": 108, "height": 56},
                            {"url": "https://external-preview.redd.it/320.jpg?width=320&amp;s=3", "width": 320, "height": 168},
                            {"url": "https://external-preview.redd.it/640.jpg?width=640&amp;s=4", "width": 640, "height": 336},
                        ],
                        "id": "img1",
                    }
                ],
                "enabled": False,
            },
        },
    }


@pytest.fixture
def sample_deal():
    """A parsed deal for storage tests."""
    return ParsedDeal(
        title="Sony Headphones",
        description=None,
        deal_price=Decimal("199"),
        original_price=Decimal("299"),
        discount_percent=33,
        currency=Currency.USD,
        product_url="http://amazon.com/dp/xyz",
        image_url=None,
        store="Amazon",
        category_slug="electronics",
        source_post_id="abc",
        source_score=50,
    )


@pytest.fixture
def db_url(tmp_path):
    """SQLite URL in a temporary directory."""
    return f"sqlite:///{tmp_path / 'deals.db'}"
