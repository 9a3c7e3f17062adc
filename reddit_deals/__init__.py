"""Extracts structured deals from Reddit deal posts."""

from .models import BatchReport, Currency, ParsedDeal, ParseOutcome, ParserConfig, ParseStatus, RawPost
from .parser import PostParser, parse_reddit_post, parse_reddit_posts
from .registry import DEFAULT_REGISTRY, Registry

__version__ = "0.1.0"

__all__ = [
    "BatchReport",
    "Currency",
    "ParsedDeal",
    "ParseOutcome",
    "ParserConfig",
    "ParseStatus",
    "RawPost",
    "PostParser",
    "parse_reddit_post",
    "parse_reddit_posts",
    "Registry",
    "DEFAULT_REGISTRY",
]
