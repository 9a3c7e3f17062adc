"""Validation utilities for URLs found in posts."""

from typing import Optional
from urllib.parse import urlparse

from ..registry import DEFAULT_REGISTRY, Registry


def validate_url(url: Optional[str]) -> bool:
    """Validate URL format."""
    if not url:
        return False

    try:
        parsed = urlparse(url)
        return bool(parsed.scheme and parsed.netloc)
    except ValueError:
        return False


def is_absolute_http_url(url: Optional[str]) -> bool:
    """Check that a URL is an absolute http(s) URL."""
    if not validate_url(url):
        return False
    return urlparse(url).scheme.lower() in ('http', 'https')


def is_feed_permalink(url: str, feed_domain: str = "reddit.com") -> bool:
    """Check whether a URL points back at the feed site itself."""
    return feed_domain.lower() in url.lower()


def is_product_url(
    url: str,
    registry: Registry = DEFAULT_REGISTRY,
    feed_domain: str = "reddit.com",
) -> bool:
    """Check if URL could be a store/product page (not an image or feed link)."""
    if not url:
        return False

    if any(pattern.search(url) for pattern in registry.skip_urls):
        return False

    return not is_feed_permalink(url, feed_domain)
