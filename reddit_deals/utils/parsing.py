"""Parsing utilities for extracting prices, discounts and titles from post text."""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Optional, Tuple

from ..models import Currency
from ..registry import DEFAULT_REGISTRY, DISCOUNT_PATTERN, TITLE_FILLER_PATTERN, Registry


# Amounts at or above this are treated as OCR/garbage matches
MAX_PRICE = Decimal("10000000")

_HYPE_PREFIX = re.compile(
    r'^(huge|mega|super|bumper)\s+(deal|sale|discount|offer)s?[\s:\-]*',
    re.IGNORECASE,
)
_EMOJI = re.compile('[\U0001F300-\U0001F9FF]|[\u2700-\u27BF]')
_DECORATIVE = re.compile('[\u26a1\u26a0\ufe0f\u2728\U0001F525\U0001F6A8\U0001F389]')
_EDGE_SYMBOLS = re.compile(r'^[!\s\-|:]+|[!\s\-|:]+$')
_CURRENCY_AMOUNT = r'(?:[$€£₹]|\bRs\.?|\bINR|\bCAD|\bAUD)\s*[\d,]+(?:\.\d{1,2})?'
# Only a price (or price pair) closing the title, e.g. "for $99" or "$199 (was $299)"
_TRAILING_PRICE = re.compile(
    r'\s*(?:\b(?:for|at|now|only|just)\s+)?' + _CURRENCY_AMOUNT
    + r'(?:\s*\(\s*(?:was|from|mrp|reg|original)\b[^)]*\)'
    r'|\s+(?:was|from|mrp|reg|original)\s*' + _CURRENCY_AMOUNT + r')?\s*$',
    re.IGNORECASE,
)

MIN_TITLE_LENGTH = 5


def clean_text(text: Optional[str]) -> str:
    """Clean and normalize text content."""
    if not text:
        return ""

    # Remove extra whitespace and normalize
    text = re.sub(r'\s+', ' ', text.strip())

    html_entities = {
        '&amp;': '&',
        '&lt;': '<',
        '&gt;': '>',
        '&quot;': '"',
        '&#x200B;': '',
        '&nbsp;': ' ',
    }

    for entity, replacement in html_entities.items():
        text = text.replace(entity, replacement)

    return text.strip()


def unescape_url(url: str) -> str:
    """Undo the ``&amp;`` escaping Reddit applies to media URLs."""
    return url.replace('&amp;', '&')


def _to_decimal(raw: str) -> Optional[Decimal]:
    try:
        return Decimal(raw.replace(',', ''))
    except (InvalidOperation, ValueError):
        return None


def extract_price_with_currency(
    text: str,
    registry: Registry = DEFAULT_REGISTRY,
    default_currency: Currency = Currency.USD,
) -> Tuple[Optional[Decimal], Currency]:
    """Find the first plausible price and the currency it was written in.

    Currencies are tried in registry order. Returns ``(None, default_currency)``
    when nothing usable is found.
    """
    if not text:
        return None, default_currency

    for currency, patterns in registry.currencies:
        for pattern in patterns:
            match = pattern.search(text)
            if not match:
                continue

            price = _to_decimal(match.group(1))
            if price is not None and Decimal(0) < price < MAX_PRICE:
                return price, currency

    return None, default_currency


def extract_price(text: str, registry: Registry = DEFAULT_REGISTRY) -> Optional[Decimal]:
    """Extract just the price from text."""
    return extract_price_with_currency(text, registry)[0]


def extract_prices(
    text: str,
    registry: Registry = DEFAULT_REGISTRY,
    default_currency: Currency = Currency.USD,
) -> Dict[str, Optional[Decimal]]:
    """Extract deal price, original price and currency from text.

    Looks for "was/from/original/reg/mrp" price pairs first. The smaller
    amount is always the deal price, whatever order the post used. Falls
    back to a single price with no original price.
    """
    for currency, patterns in registry.price_pairs:
        for pattern in patterns:
            match = pattern.search(text or "")
            if not match:
                continue

            first = _to_decimal(match.group(1))
            second = _to_decimal(match.group(2))
            if first is not None and second is not None:
                return {
                    'deal_price': min(first, second),
                    'original_price': max(first, second),
                    'currency': currency,
                }

    price, currency = extract_price_with_currency(text, registry, default_currency)
    return {'deal_price': price, 'original_price': None, 'currency': currency}


def extract_discount(
    text: str,
    deal_price: Optional[Decimal],
    original_price: Optional[Decimal],
) -> Optional[int]:
    """Extract discount percentage.

    An explicit "N% off" claim wins over the discount computed from prices.
    """
    match = DISCOUNT_PATTERN.search(text or "")
    if match:
        discount = int(match.group(1))
        if 0 < discount <= 100:
            return discount

    # Calculate from prices if available
    if deal_price and original_price and original_price > deal_price:
        ratio = (original_price - deal_price) / original_price * 100
        discount = int(ratio.quantize(Decimal('1'), rounding=ROUND_HALF_UP))
        if 0 < discount <= 100:
            return discount

    return None


def clean_title(title: str) -> str:
    """Clean a post title for display.

    Drops "link in comments" style filler, hype prefixes such as
    "HUGE DEAL:", emoji and a trailing price. Prices elsewhere in the
    title are part of the product name. If almost nothing is
    left the original title is returned trimmed.
    """
    if not title:
        return ""

    cleaned = TITLE_FILLER_PATTERN.sub('', clean_text(title))
    cleaned = _EMOJI.sub('', cleaned)
    cleaned = _DECORATIVE.sub('', cleaned)
    cleaned = _EDGE_SYMBOLS.sub('', cleaned)
    cleaned = _HYPE_PREFIX.sub('', cleaned)
    cleaned = _TRAILING_PRICE.sub('', cleaned)
    cleaned = _EDGE_SYMBOLS.sub('', cleaned)
    cleaned = re.sub(r'\s{2,}', ' ', cleaned).strip()

    if len(cleaned) < MIN_TITLE_LENGTH:
        return title.strip()

    return cleaned[0].upper() + cleaned[1:]


def truncate_description(body: Optional[str], max_length: int = 2000) -> Optional[str]:
    """Return the post body cut to ``max_length`` characters, or None if empty."""
    if not body:
        return None
    return body[:max_length]
