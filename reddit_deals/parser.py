"""Turns Reddit posts into structured deals."""

import asyncio
import inspect
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence, Union

import structlog

from .images import ImageResolver, PageFetcher
from .models import BatchReport, ParsedDeal, ParseOutcome, ParserConfig, RawPost
from .registry import DEFAULT_REGISTRY, Registry
from .stores import detect_store
from .urls import extract_product_url
from .utils.parsing import clean_title, extract_discount, extract_prices, truncate_description
from .utils.scoring import detect_category
from .utils.validation import is_feed_permalink

logger = structlog.get_logger()

CommentFetcher = Callable[[str], Union[Awaitable[List[str]], List[str]]]

SKIP_NON_DEAL_TITLE = "non-deal title"
SKIP_NO_DEAL_INFO = "no deal info"


class PostParser:
    """Extracts a deal from a single post and from batches of posts."""

    def __init__(
        self,
        config: Optional[ParserConfig] = None,
        registry: Registry = DEFAULT_REGISTRY,
        fetcher: Optional[PageFetcher] = None,
    ):
        self.config = config or ParserConfig()
        self.registry = registry
        self.image_resolver = ImageResolver(self.config, registry, fetcher)

    def is_non_deal_title(self, title: str) -> bool:
        """Meta, question and discussion threads are never deals."""
        return any(pattern.search(title or "") for pattern in self.registry.non_deal_titles)

    async def parse_post(
        self, post: RawPost, comments: Optional[Sequence[str]] = None
    ) -> Optional[ParsedDeal]:
        """Parse a post into a deal, or None if it is not one."""
        outcome = await self.parse_post_outcome(post, comments)
        return outcome.deal

    async def parse_post_outcome(
        self, post: RawPost, comments: Optional[Sequence[str]] = None
    ) -> ParseOutcome:
        """Parse a post and report whether it was parsed or skipped.

        Unexpected errors propagate; the batch methods turn them into
        failed outcomes.
        """
        if self.is_non_deal_title(post.title):
            logger.debug("Skipping post - non-deal title", post_id=post.id, title=post.title)
            return ParseOutcome.skipped(post, SKIP_NON_DEAL_TITLE)

        full_text = f"{post.title} {post.selftext}"

        product_url = extract_product_url(
            post,
            comments,
            self.registry,
            self.config.feed_domain,
            self.config.feed_base_url,
        )
        prices = extract_prices(full_text, self.registry, self.config.default_currency)
        discount_percent = extract_discount(
            full_text, prices['deal_price'], prices['original_price']
        )
        store = detect_store(product_url, self.registry)
        category_slug = detect_category(full_text, self.registry, self.config.default_category)

        image_url = await self.image_resolver.resolve(post, product_url)

        # Nothing actionable: no price, no discount and no external link
        if (
            not prices['deal_price']
            and not discount_percent
            and is_feed_permalink(product_url, self.config.feed_domain)
        ):
            logger.debug("Skipping post - no deal info", post_id=post.id, title=post.title)
            return ParseOutcome.skipped(post, SKIP_NO_DEAL_INFO)

        deal = ParsedDeal(
            title=clean_title(post.title),
            description=truncate_description(post.selftext, self.config.description_max_length),
            deal_price=prices['deal_price'],
            original_price=prices['original_price'],
            discount_percent=discount_percent,
            currency=prices['currency'],
            product_url=product_url,
            image_url=image_url,
            store=store,
            category_slug=category_slug,
            source_post_id=post.id,
            source_score=post.score,
        )
        logger.debug("Parsed deal", post_id=post.id, title=deal.title, store=store)
        return ParseOutcome.parsed(post, deal)

    async def _process_post(
        self,
        post: RawPost,
        fetch_comments: Optional[CommentFetcher],
        semaphore: Optional[asyncio.Semaphore],
    ) -> ParseOutcome:
        """Fetch comments and parse one post, isolating any failure."""
        try:
            if semaphore is not None:
                async with semaphore:
                    return await self._fetch_and_parse(post, fetch_comments)
            return await self._fetch_and_parse(post, fetch_comments)
        except Exception as e:
            logger.error("Failed to parse post", post_id=post.id, title=post.title, error=str(e))
            return ParseOutcome.failed(post, e)

    async def _fetch_and_parse(
        self, post: RawPost, fetch_comments: Optional[CommentFetcher]
    ) -> ParseOutcome:
        comments: List[str] = []
        if fetch_comments is not None:
            result = fetch_comments(post.id)
            if inspect.isawaitable(result):
                result = await result
            comments = list(result or [])

        return await self.parse_post_outcome(post, comments)

    async def parse_batch(
        self,
        posts: Sequence[RawPost],
        fetch_comments: Optional[CommentFetcher] = None,
    ) -> BatchReport:
        """Parse posts concurrently, one outcome per post in input order."""
        report = BatchReport()

        semaphore = None
        if self.config.max_concurrency:
            semaphore = asyncio.Semaphore(self.config.max_concurrency)

        outcomes = await asyncio.gather(
            *(self._process_post(post, fetch_comments, semaphore) for post in posts)
        )
        report.outcomes = list(outcomes)
        report.ended_at = datetime.utcnow()

        logger.info(
            "Parsed batch",
            posts=len(posts),
            parsed=report.parsed_count,
            skipped=report.skipped_count,
            failed=report.failed_count,
        )
        return report

    async def parse_posts(
        self,
        posts: Sequence[RawPost],
        fetch_comments: Optional[CommentFetcher] = None,
    ) -> List[ParsedDeal]:
        """Parse posts concurrently and return only the deals."""
        report = await self.parse_batch(posts, fetch_comments)
        return report.deals


async def parse_reddit_post(
    post: RawPost,
    comments: Optional[Sequence[str]] = None,
    fetcher: Optional[PageFetcher] = None,
) -> Optional[ParsedDeal]:
    """Parse a single post with default settings."""
    return await PostParser(fetcher=fetcher).parse_post(post, comments)


async def parse_reddit_posts(
    posts: Sequence[RawPost],
    fetch_comments: Optional[CommentFetcher] = None,
    fetcher: Optional[PageFetcher] = None,
) -> List[ParsedDeal]:
    """Parse many posts with default settings."""
    return await PostParser(fetcher=fetcher).parse_posts(posts, fetch_comments)
