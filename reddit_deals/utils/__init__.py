"""Utility functions and helpers for the deal parser."""

from .parsing import (
    clean_text,
    clean_title,
    extract_discount,
    extract_price,
    extract_price_with_currency,
    extract_prices,
    truncate_description,
)

from .scoring import (
    detect_category,
    score_categories,
)

from .validation import (
    is_absolute_http_url,
    is_feed_permalink,
    is_product_url,
    validate_url,
)

__all__ = [
    # Parsing utilities
    "clean_text",
    "clean_title",
    "extract_discount",
    "extract_price",
    "extract_price_with_currency",
    "extract_prices",
    "truncate_description",

    # Scoring utilities
    "detect_category",
    "score_categories",

    # Validation utilities
    "is_absolute_http_url",
    "is_feed_permalink",
    "is_product_url",
    "validate_url",
]
