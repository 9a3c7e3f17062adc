"""Product URL extraction from posts and their comments."""

import re
from typing import List, Optional, Sequence

from .models import RawPost
from .registry import DEFAULT_REGISTRY, Registry
from .stores import matches_known_store
from .utils.validation import is_product_url


_MARKDOWN_LINK = re.compile(r'\[.*?\]\((https?://[^\s)]+)\)')
_PLAIN_URL = re.compile(r'(?<!\()https?://[^\s)\]<>]+')
_TITLE_URL = re.compile(r'https?://[^\s)\]]+')
_TRAILING_BRACKETS = re.compile(r'[)\]]+$')


def _urls_in_text(text: str) -> List[str]:
    """Markdown link targets first, then bare URLs."""
    if not text:
        return []
    return _MARKDOWN_LINK.findall(text) + _PLAIN_URL.findall(text)


def extract_candidate_urls(post: RawPost, comments: Optional[Sequence[str]] = None) -> List[str]:
    """Collect every URL mentioned by a post, in priority order.

    Order: body links, the link-post target, URLs in the title, then links
    found in comments ("link in comments" posts).
    """
    urls = _urls_in_text(post.selftext)

    if not post.is_self and post.url:
        urls.append(post.url)

    urls.extend(_TITLE_URL.findall(post.title or ""))

    for comment in comments or []:
        urls.extend(_urls_in_text(comment))

    return urls


def permalink_url(post: RawPost, feed_base_url: str = "https://reddit.com") -> str:
    """Fully qualified permalink of the post."""
    if post.permalink.startswith(('http://', 'https://')):
        return post.permalink
    return f"{feed_base_url.rstrip('/')}{post.permalink}"


def extract_product_url(
    post: RawPost,
    comments: Optional[Sequence[str]] = None,
    registry: Registry = DEFAULT_REGISTRY,
    feed_domain: str = "reddit.com",
    feed_base_url: str = "https://reddit.com",
) -> str:
    """Pick the most likely product URL for a post.

    Known merchant URLs win over any other link, even if they appear later.
    Without any usable link the post's own permalink is returned.
    """
    candidates = [
        url for url in extract_candidate_urls(post, comments)
        if is_product_url(url, registry, feed_domain)
    ]

    # First pass: prioritize known store URLs
    for url in candidates:
        if matches_known_store(url, registry):
            return _TRAILING_BRACKETS.sub('', url)

    # Second pass: any valid product URL
    if candidates:
        return _TRAILING_BRACKETS.sub('', candidates[0])

    return permalink_url(post, feed_base_url)
