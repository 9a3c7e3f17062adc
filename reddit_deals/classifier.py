"""LLM-based title cleanup and category suggestions for stored deals."""

import json
import os
import re
import time
from typing import Callable, Dict, List, Optional

import structlog

from .database import DealStore
from .models import ClassificationResult, TitleClassification
from .registry import DEFAULT_REGISTRY, Registry

logger = structlog.get_logger()

MODEL_NAME = "gemini-2.0-flash"
BATCH_SIZE = 20
MAX_TITLE_LENGTH = 100

# Titles at most this long without brackets are already clean
SHORT_TITLE_LENGTH = 60

VALID_CATEGORIES = [
    "electronics",
    "fashion",
    "home",
    "beauty",
    "sports",
    "books",
    "gaming",
    "grocery",
    "baby",
    "automotive",
    "health",
    "toys",
    "office",
    "travel",
    "other",
]

_CODE_FENCE = re.compile(r'```(?:json)?\n?')


class ClassifierError(Exception):
    """Raised when the language model cannot be used."""
    pass


class GeminiCompleter:
    """Sends prompts to Gemini and returns the response text."""

    def __init__(self, api_key: Optional[str] = None, model: str = MODEL_NAME):
        self.api_key = api_key or os.getenv("GEMINI_API_KEY")
        self.model = model
        self._client = None

    def _get_client(self):
        if not self.api_key:
            raise ClassifierError("GEMINI_API_KEY is not configured")
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def __call__(self, prompt: str) -> str:
        response = self._get_client().models.generate_content(model=self.model, contents=prompt)
        return response.text or ""


def build_prompt(title: str, product_url: str, categories: Optional[List[str]] = None) -> str:
    """Build the classification prompt for one deal."""
    categories = categories or VALID_CATEGORIES
    return f"""You are a product classifier for an e-commerce deals platform. Analyze the product title and URL to extract key information.

Product Title: "{title}"
Product URL: {product_url}

Instructions:

1. cleanTitle: Create a concise, readable title (max 80 characters). Remove:
   - SKU codes, model numbers, random alphanumeric strings
   - Excessive SEO keywords and repetition
   - Store-specific prefixes like "[Deal]" or "(Limited Time)"
   - Redundant specifications that don't add value
   Keep: Brand name, product type, essential attributes (color, size if important)

2. brand: Extract the brand name if clearly identifiable from the title or URL. Return null if unclear or generic.

3. suggestedCategory: Based on the product type, suggest ONE category from this list:
   {", ".join(categories)}

   Use the URL domain and path to help identify the product type:
   - amazon.in/dp/... electronics section -> "electronics"
   - flipkart.com/mobiles/... -> "electronics"
   - myntra.com, ajio.com -> likely "fashion"
   - nykaa.com -> "beauty"

   Return null if you cannot determine a suitable category.

Respond with ONLY valid JSON, no markdown or code blocks:
{{"cleanTitle": "...", "brand": "..." or null, "suggestedCategory": "..." or null}}"""


def parse_classification(text: str, categories: Optional[List[str]] = None) -> TitleClassification:
    """Validate a model response.

    Raises ValueError if the response is not usable.
    """
    categories = categories or VALID_CATEGORIES
    text = (text or "").strip()

    # Remove markdown code blocks if present
    if text.startswith("```"):
        text = _CODE_FENCE.sub("", text).strip()
        if text.endswith("```"):
            text = text[:-3].strip()

    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Response is not a JSON object")

    clean_title = data.get('cleanTitle')
    if not clean_title or not isinstance(clean_title, str):
        raise ValueError("Invalid cleanTitle in response")

    clean_title = clean_title.strip()
    if len(clean_title) > MAX_TITLE_LENGTH:
        clean_title = clean_title[:MAX_TITLE_LENGTH - 3] + "..."

    brand = data.get('brand')
    brand = brand.strip() if isinstance(brand, str) and brand.strip() else None

    category = data.get('suggestedCategory')
    category = category.lower() if isinstance(category, str) else None
    if category not in categories:
        category = None

    return TitleClassification(clean_title=clean_title, brand=brand, suggested_category=category)


def needs_classification(title: str) -> bool:
    """Long titles and titles with bracketed tags are worth a model call."""
    return len(title) > SHORT_TITLE_LENGTH or '[' in title or '(' in title


class TitleClassifier:
    """Runs stored deals through the language model, one at a time."""

    def __init__(
        self,
        store: DealStore,
        complete: Optional[Callable[[str], str]] = None,
        registry: Registry = DEFAULT_REGISTRY,
        delay_seconds: float = 4.0,
        batch_delay_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.complete = complete or GeminiCompleter()
        self.delay_seconds = delay_seconds
        self.batch_delay_seconds = batch_delay_seconds
        self.sleep = sleep

        # Categories a suggestion may move a deal into
        self.known_categories = set(registry.category_slugs) | {"other"}

    def classify(self, title: str, product_url: str) -> Optional[TitleClassification]:
        """Ask the model about one deal; None if anything goes wrong."""
        try:
            return parse_classification(self.complete(build_prompt(title, product_url)))
        except Exception as e:
            logger.error("Failed to classify deal", title=title, product_url=product_url, error=str(e))
            return None

    def process_unclassified(self, limit: int = BATCH_SIZE) -> ClassificationResult:
        """Classify one batch of deals that have not been processed yet."""
        result = ClassificationResult()

        deals = self.store.get_unclassified_deals(limit)
        if not deals:
            logger.info("No unprocessed deals found")
            return result

        logger.info("Processing deals for title classification", count=len(deals))

        for index, deal in enumerate(deals):
            title = deal.get('title') or ''
            if not needs_classification(title):
                self.store.mark_title_processed(deal['dedup_key'], clean_title=title)
                result.skipped += 1
                continue

            classification = self.classify(title, deal.get('product_url') or '')
            if classification:
                category = self._category_update(deal, classification)
                if category:
                    result.categories_updated += 1
                    logger.debug(
                        "Category updated",
                        dedup_key=deal['dedup_key'],
                        old_category=deal.get('category_slug'),
                        new_category=category,
                    )

                self.store.mark_title_processed(
                    deal['dedup_key'],
                    clean_title=classification.clean_title,
                    brand=classification.brand,
                    category_slug=category,
                )
                result.processed += 1
                logger.debug(
                    "Deal classified",
                    dedup_key=deal['dedup_key'],
                    original=title,
                    clean=classification.clean_title,
                    brand=classification.brand,
                )
            else:
                self.store.mark_title_processed(deal['dedup_key'])
                result.failed += 1

            # Delay between API calls to respect rate limits
            if index < len(deals) - 1:
                self.sleep(self.delay_seconds)

        logger.info("Title classification batch completed", **result.model_dump())
        return result

    def _category_update(self, deal: Dict, classification: TitleClassification) -> Optional[str]:
        """The suggested category, if it differs from the current one and exists."""
        suggested = classification.suggested_category
        if not suggested or suggested == deal.get('category_slug'):
            return None
        if suggested not in self.known_categories:
            return None
        return suggested

    def process_all(self, batch_size: int = BATCH_SIZE) -> ClassificationResult:
        """Keep classifying batches until a batch comes back short."""
        total = ClassificationResult()

        while True:
            batch = self.process_unclassified(batch_size)
            total = total + batch
            if batch.total != batch_size:
                break
            self.sleep(self.batch_delay_seconds)

        logger.info("All title classification completed", **total.model_dump())
        return total
