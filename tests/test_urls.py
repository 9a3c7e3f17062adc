"""Tests for product URL extraction and store detection."""

import pytest

from reddit_deals.models import RawPost
from reddit_deals.stores import detect_store, matches_known_store
from reddit_deals.urls import extract_candidate_urls, extract_product_url, permalink_url
from reddit_deals.utils.validation import (
    is_absolute_http_url,
    is_product_url,
    validate_url,
)


def make_post(**kwargs) -> RawPost:
    defaults = dict(id="p1", title="Deal", permalink="/r/deals/comments/p1/deal/", is_self=True)
    defaults.update(kwargs)
    return RawPost(**defaults)


@pytest.mark.parametrize("url,store", [
    ("https://www.AMAZON.co.uk/dp/B01", "Amazon"),
    ("https://amzn.to/3xyz", "Amazon"),
    ("https://store.steampowered.com/app/1091500", "Steam"),
    ("https://fkrt.it/abc", "Flipkart"),
    ("https://www.microsoft.com/store/p/forza", "Xbox"),
    ("https://www.bhphotovideo.com/c/product/1", "B&H Photo"),
    ("https://www.swiggy.com/instamart/item", "Swiggy"),
])
def test_detect_store(url, store):
    """Test merchant detection from URLs."""
    assert detect_store(url) == store
    assert matches_known_store(url) is True


def test_detect_store_unknown():
    """Test URLs that match no merchant."""
    assert detect_store("https://example.com/product") is None
    assert detect_store("") is None
    assert detect_store(None) is None
    assert matches_known_store("https://example.com") is False


def test_is_product_url():
    """Test the non-product URL denylist."""
    assert is_product_url("https://www.amazon.in/dp/B01") is True
    assert is_product_url("https://i.redd.it/abc123.png") is False
    assert is_product_url("https://imgur.com/gallery/x") is False
    assert is_product_url("https://cdn.example.com/photo.JPG") is False
    assert is_product_url("https://www.reddit.com/r/deals/comments/x") is False
    assert is_product_url("https://old.reddit.com/user/someone") is False
    assert is_product_url("") is False


def test_url_validation_helpers():
    """Test URL validation helpers."""
    assert validate_url("https://example.com/x") is True
    assert validate_url("example.com/x") is False
    assert is_absolute_http_url("https://b.thumbs.redditmedia.com/a.jpg") is True
    assert is_absolute_http_url("self") is False
    assert is_absolute_http_url("ftp://example.com/file") is False
    assert is_absolute_http_url(None) is False


def test_known_store_preferred_over_earlier_link():
    """Test that a merchant link wins even when it appears later."""
    post = make_post(selftext="check this out http://example.com/x then http://amazon.in/dp/123")
    assert extract_product_url(post) == "http://amazon.in/dp/123"


def test_first_link_used_without_known_store():
    """Test the second pass over non-merchant links."""
    post = make_post(selftext="Deal at https://shop.example.com/item and https://other.example.org/y")
    assert extract_product_url(post) == "https://shop.example.com/item"


def test_markdown_link_in_body():
    """Test markdown link targets."""
    post = make_post(selftext="[Buy here](https://www.flipkart.com/item/p/itm123) before it ends")
    assert extract_product_url(post) == "https://www.flipkart.com/item/p/itm123"


def test_trailing_brackets_stripped():
    """Test cleanup of brackets captured with the URL."""
    post = make_post(is_self=False, url="https://www.newegg.com/p/N82E1)]")
    assert extract_product_url(post) == "https://www.newegg.com/p/N82E1"


def test_self_post_url_ignored():
    """Test that a self post's own URL is not a candidate."""
    post = make_post(is_self=True, url="https://example.com/not-used", selftext="No links")
    assert extract_candidate_urls(post) == []


def test_media_links_fall_back_to_permalink():
    """Test fallback to the post permalink."""
    post = make_post(selftext="https://i.redd.it/abc.jpg https://imgur.com/x https://www.reddit.com/gallery/y")
    assert extract_product_url(post) == "https://reddit.com/r/deals/comments/p1/deal/"


def test_link_in_comments():
    """Test product links found only in comments."""
    post = make_post(title="Great headphones deal - link in comments")
    comments = ["Thanks!", "Here you go: https://www.amazon.com/dp/B0TEST"]
    assert extract_product_url(post, comments) == "https://www.amazon.com/dp/B0TEST"


def test_comment_merchant_beats_body_link():
    """Test that merchant preference spans all sources."""
    post = make_post(selftext="Review: https://blog.example.com/review")
    comments = ["[link](https://www.bestbuy.com/site/123)"]
    assert extract_product_url(post, comments) == "https://www.bestbuy.com/site/123"


def test_candidate_order():
    """Test source ordering of candidate URLs."""
    post = make_post(
        title="Deal https://d.com/4",
        selftext="[a](https://a.com/1) and https://b.com/2",
        is_self=False,
        url="https://c.com/3",
    )
    comments = ["[e](https://e.com/5) https://f.com/6"]

    assert extract_candidate_urls(post, comments) == [
        "https://a.com/1",
        "https://b.com/2",
        "https://c.com/3",
        "https://d.com/4",
        "https://e.com/5",
        "https://f.com/6",
    ]


def test_permalink_url():
    """Test permalink qualification."""
    post = make_post(permalink="/r/deals/comments/p1/deal/")
    assert permalink_url(post) == "https://reddit.com/r/deals/comments/p1/deal/"
    assert permalink_url(post, "https://www.reddit.com/") == "https://www.reddit.com/r/deals/comments/p1/deal/"

    absolute = make_post(permalink="https://reddit.com/r/deals/comments/p1/deal/")
    assert permalink_url(absolute) == "https://reddit.com/r/deals/comments/p1/deal/"
