"""Keyword scoring used to assign a category to a deal."""

from typing import List, Tuple

from ..registry import DEFAULT_REGISTRY, Registry


# Keywords longer than this count double
SPECIFIC_KEYWORD_LENGTH = 5


def keyword_weight(keyword: str) -> int:
    """Longer keywords are more specific, so they weigh more."""
    return 2 if len(keyword) > SPECIFIC_KEYWORD_LENGTH else 1


def score_categories(text: str, registry: Registry = DEFAULT_REGISTRY) -> List[Tuple[str, int]]:
    """Score every category against the text, in registry order."""
    lower_text = (text or "").lower()

    scores = []
    for category, keywords in registry.categories:
        score = sum(keyword_weight(k) for k in keywords if k in lower_text)
        scores.append((category, score))

    return scores


def detect_category(
    text: str,
    registry: Registry = DEFAULT_REGISTRY,
    default_category: str = "other",
) -> str:
    """Pick the best scoring category.

    Ties go to the category declared first. Text that matches no keyword
    gets ``default_category``.
    """
    best_category = default_category
    best_score = 0

    for category, score in score_categories(text, registry):
        if score > best_score:
            best_score = score
            best_category = category

    return best_category
