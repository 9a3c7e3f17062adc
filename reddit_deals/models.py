"""Pydantic models for Reddit deal posts, parsed deals and parser settings."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


CRAWLER_USER_AGENT = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


class Currency(str, Enum):
    """Supported currencies."""
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    CAD = "CAD"
    AUD = "AUD"
    INR = "INR"


class PreviewResolution(BaseModel):
    """One rendition of a Reddit preview image."""

    url: str
    width: int = Field(0, ge=0)
    height: int = Field(0, ge=0)


class PreviewImage(BaseModel):
    """Preview image with its original source and downscaled variants."""

    source: PreviewResolution
    resolutions: List[PreviewResolution] = Field(default_factory=list)


class RawPost(BaseModel):
    """A Reddit submission as delivered by the feed client."""

    id: str = Field(..., min_length=1)
    title: str
    selftext: str = ""
    permalink: str = ""
    url: Optional[str] = None
    is_self: bool = True
    score: int = 0
    thumbnail: Optional[str] = None
    preview_images: List[PreviewImage] = Field(default_factory=list)

    # Listing metadata
    subreddit: Optional[str] = None
    created_utc: Optional[float] = None
    num_comments: int = Field(0, ge=0)

    @field_validator('selftext', mode='before')
    @classmethod
    def validate_selftext(cls, v: Optional[str]) -> str:
        """Treat a missing body as empty text."""
        return v or ""

    @classmethod
    def from_listing_child(cls, child: Dict[str, Any]) -> "RawPost":
        """Build a post from a child of a Reddit listing response.

        Accepts either the ``{"kind": "t3", "data": {...}}`` envelope or the
        bare ``data`` dictionary.
        """
        data = child.get('data', child) if 'kind' in child else child

        preview_images = []
        preview = data.get('preview') or {}
        for image in preview.get('images') or []:
            try:
                preview_images.append(PreviewImage(**image))
            except (TypeError, ValueError):
                continue

        return cls(
            id=data['id'],
            title=data.get('title', ''),
            selftext=data.get('selftext'),
            permalink=data.get('permalink', ''),
            url=data.get('url'),
            is_self=data.get('is_self', True),
            score=data.get('score', 0),
            thumbnail=data.get('thumbnail'),
            preview_images=preview_images,
            subreddit=data.get('subreddit'),
            created_utc=data.get('created_utc'),
            num_comments=data.get('num_comments') or 0,
        )


class ParsedDeal(BaseModel):
    """Structured deal extracted from a single Reddit post."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=2000)

    # Pricing
    deal_price: Optional[Decimal] = Field(None, ge=0)
    original_price: Optional[Decimal] = Field(None, ge=0)
    discount_percent: Optional[int] = Field(None, gt=0, le=100)
    currency: Currency = Field(Currency.USD)

    # Links and media
    product_url: str = Field(..., min_length=1)
    image_url: Optional[str] = None
    store: Optional[str] = Field(None, max_length=100)
    category_slug: str = Field("other", min_length=1)

    # Provenance
    source_post_id: str = Field(..., min_length=1)
    source_score: int = 0

    @model_validator(mode='after')
    def validate_price_order(self) -> "ParsedDeal":
        """Ensure the original price never undercuts the deal price."""
        if (
            self.deal_price is not None
            and self.original_price is not None
            and self.original_price < self.deal_price
        ):
            raise ValueError("original_price must be >= deal_price")
        return self

    @computed_field
    @property
    def dedup_key(self) -> str:
        """Key used by storage to upsert the same post only once."""
        return f"reddit:{self.source_post_id}"

    @computed_field
    @property
    def savings_amount(self) -> Optional[Decimal]:
        """Calculate absolute savings amount."""
        if self.deal_price is not None and self.original_price is not None:
            return self.original_price - self.deal_price
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary with proper serialization."""
        return self.model_dump(mode='json')


class ParserConfig(BaseModel):
    """Tunable settings for the post parser."""

    default_currency: Currency = Field(Currency.USD)
    default_category: str = Field("other", min_length=1)

    # Feed site identity
    feed_domain: str = Field("reddit.com", min_length=1)
    feed_base_url: str = Field("https://reddit.com")

    description_max_length: int = Field(2000, ge=1, le=2000)

    # Image resolution
    preferred_image_width: Tuple[int, int] = Field((300, 800))
    placeholder_image_markers: List[str] = Field(
        default_factory=lambda: ["external-preview", "redditmedia"]
    )
    image_fetch_timeout: float = Field(3.0, gt=0, le=60)
    fetch_og_images: bool = Field(True)
    crawler_user_agent: str = Field(CRAWLER_USER_AGENT)

    # Batch settings
    max_concurrency: Optional[int] = Field(None, ge=1, description="Cap on concurrent post tasks")

    @field_validator('preferred_image_width')
    @classmethod
    def validate_width_range(cls, v: Tuple[int, int]) -> Tuple[int, int]:
        """Ensure the preferred width range is ordered."""
        low, high = v
        if low > high:
            raise ValueError("preferred_image_width must be (min, max)")
        return v

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ParserConfig":
        """Load parser settings from a YAML file."""
        import yaml

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        return cls(**data.get('parser', data))


class ParseStatus(str, Enum):
    """Outcome of parsing a single post."""
    PARSED = "parsed"
    SKIPPED = "skipped"
    FAILED = "failed"


class ParseOutcome(BaseModel):
    """Per-post result collected by the batch driver."""

    post_id: str
    title: str = ""
    status: ParseStatus
    deal: Optional[ParsedDeal] = None
    reason: Optional[str] = Field(None, description="Skip reason or error message")

    @classmethod
    def parsed(cls, post: RawPost, deal: ParsedDeal) -> "ParseOutcome":
        return cls(post_id=post.id, title=post.title, status=ParseStatus.PARSED, deal=deal)

    @classmethod
    def skipped(cls, post: RawPost, reason: str) -> "ParseOutcome":
        return cls(post_id=post.id, title=post.title, status=ParseStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, post: RawPost, error: BaseException) -> "ParseOutcome":
        return cls(
            post_id=post.id,
            title=post.title,
            status=ParseStatus.FAILED,
            reason=f"{type(error).__name__}: {error}",
        )


class BatchReport(BaseModel):
    """Outcomes for a batch of posts, one per input post."""

    outcomes: List[ParseOutcome] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    ended_at: Optional[datetime] = None

    @property
    def deals(self) -> List[ParsedDeal]:
        """Deals from the successfully parsed posts."""
        return [o.deal for o in self.outcomes if o.status == ParseStatus.PARSED and o.deal]

    @computed_field
    @property
    def parsed_count(self) -> int:
        return self._count(ParseStatus.PARSED)

    @computed_field
    @property
    def skipped_count(self) -> int:
        return self._count(ParseStatus.SKIPPED)

    @computed_field
    @property
    def failed_count(self) -> int:
        return self._count(ParseStatus.FAILED)

    @computed_field
    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate batch duration in seconds."""
        if self.ended_at:
            return (self.ended_at - self.started_at).total_seconds()
        return None

    def _count(self, status: ParseStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)


class TitleClassification(BaseModel):
    """Title cleanup suggested by the language model."""

    clean_title: str = Field(..., min_length=1, max_length=100)
    brand: Optional[str] = None
    suggested_category: Optional[str] = None


class ClassificationResult(BaseModel):
    """Counters for a title classification run."""

    processed: int = Field(0, ge=0)
    failed: int = Field(0, ge=0)
    skipped: int = Field(0, ge=0)
    categories_updated: int = Field(0, ge=0)

    @property
    def total(self) -> int:
        return self.processed + self.failed + self.skipped

    def __add__(self, other: "ClassificationResult") -> "ClassificationResult":
        return ClassificationResult(
            processed=self.processed + other.processed,
            failed=self.failed + other.failed,
            skipped=self.skipped + other.skipped,
            categories_updated=self.categories_updated + other.categories_updated,
        )
