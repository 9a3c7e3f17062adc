"""Preview image resolution for parsed deals."""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urljoin

import httpx
import structlog
from selectolax.lexbor import LexborHTMLParser

from .models import CRAWLER_USER_AGENT, ParserConfig, RawPost
from .registry import DEFAULT_REGISTRY, Registry
from .utils.parsing import unescape_url
from .utils.validation import is_absolute_http_url, is_product_url

logger = structlog.get_logger()


class PageFetcher(ABC):
    """Capability for downloading a web page's markup."""

    @abstractmethod
    async def fetch(self, url: str, timeout: float) -> Optional[str]:
        """Return the page body, or None if it could not be fetched."""
        pass


class HttpPageFetcher(PageFetcher):
    """Fetch pages over HTTP with httpx."""

    def __init__(
        self,
        user_agent: str = CRAWLER_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.user_agent = user_agent
        self.client = client
        self._owns_client = False

    async def __aenter__(self):
        """Async context manager entry."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                headers={'User-Agent': self.user_agent},
                follow_redirects=True,
            )
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._owns_client and self.client:
            await self.client.aclose()
            self.client = None
            self._owns_client = False

    async def fetch(self, url: str, timeout: float) -> Optional[str]:
        """Fetch page content, returning None on any HTTP failure."""
        headers = {'User-Agent': self.user_agent}

        try:
            if self.client is not None:
                response = await self.client.get(url, headers=headers, timeout=timeout)
            else:
                async with httpx.AsyncClient(follow_redirects=True) as client:
                    response = await client.get(url, headers=headers, timeout=timeout)
            response.raise_for_status()
            return response.text
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("Page fetch failed", url=url, error=str(e))
            return None


def extract_og_image(html: str) -> Optional[str]:
    """Read the Open Graph image, falling back to the Twitter card image."""
    if not html:
        return None

    parser = LexborHTMLParser(html)
    for selector in ('meta[property="og:image"]', 'meta[name="twitter:image"]'):
        node = parser.css_first(selector)
        if node is None:
            continue
        content = (node.attributes.get('content') or '').strip()
        if content:
            return content

    return None


class ImageResolver:
    """Chooses a preview image for a post.

    Reddit preview metadata is preferred, then the post thumbnail. When
    neither yields a real image and the deal links to an external page, the
    page's Open Graph image is fetched instead. Never raises.
    """

    def __init__(
        self,
        config: Optional[ParserConfig] = None,
        registry: Registry = DEFAULT_REGISTRY,
        fetcher: Optional[PageFetcher] = None,
    ):
        self.config = config or ParserConfig()
        self.registry = registry
        self.fetcher = fetcher or HttpPageFetcher(self.config.crawler_user_agent)

    async def resolve(self, post: RawPost, product_url: str) -> Optional[str]:
        """Return the best image URL for the post, or None."""
        image_url = self._preview_image(post)

        if not image_url and is_absolute_http_url(post.thumbnail):
            image_url = post.thumbnail

        if self._is_placeholder(image_url) and is_product_url(
            product_url, self.registry, self.config.feed_domain
        ):
            page_image = await self.fetch_page_image(product_url)
            if page_image:
                image_url = page_image

        return image_url

    def _preview_image(self, post: RawPost) -> Optional[str]:
        """Pick a mid-sized rendition of the first preview image."""
        if not post.preview_images:
            return None

        image = post.preview_images[0]
        min_width, max_width = self.config.preferred_image_width
        for resolution in image.resolutions:
            if min_width <= resolution.width <= max_width:
                return unescape_url(resolution.url)

        return unescape_url(image.source.url) or None

    def _is_placeholder(self, image_url: Optional[str]) -> bool:
        """Missing images and Reddit-hosted link previews are worth replacing."""
        if not image_url:
            return True
        return any(marker in image_url for marker in self.config.placeholder_image_markers)

    async def fetch_page_image(self, url: str) -> Optional[str]:
        """Fetch the product page and read its Open Graph image."""
        if not self.config.fetch_og_images:
            return None

        timeout = self.config.image_fetch_timeout
        try:
            html = await asyncio.wait_for(self.fetcher.fetch(url, timeout), timeout=timeout)
            image_url = extract_og_image(html) if html else None
        except Exception as e:
            # Timeouts, blocked requests and bad markup all mean "no image"
            logger.debug("OG image lookup failed", url=url, error=repr(e))
            return None

        if not image_url:
            return None

        return urljoin(url, image_url)
