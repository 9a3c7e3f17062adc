"""Merchant detection from product URLs."""

from typing import Optional

from .registry import DEFAULT_REGISTRY, Registry


def detect_store(url: Optional[str], registry: Registry = DEFAULT_REGISTRY) -> Optional[str]:
    """Return the first merchant whose domain patterns match the URL."""
    if not url:
        return None

    for store, patterns in registry.stores:
        if any(pattern.search(url) for pattern in patterns):
            return store

    return None


def matches_known_store(url: Optional[str], registry: Registry = DEFAULT_REGISTRY) -> bool:
    """Check whether the URL belongs to any registered merchant."""
    return detect_store(url, registry) is not None
