"""Tests for category scoring."""

from reddit_deals.registry import DEFAULT_REGISTRY, Registry
from reddit_deals.utils.scoring import detect_category, keyword_weight, score_categories


def test_keyword_weight():
    """Test that long keywords weigh double."""
    assert keyword_weight("tv") == 1
    assert keyword_weight("phone") == 1
    assert keyword_weight("laptop") == 2
    assert keyword_weight("graphics card") == 2


def test_score_categories_order():
    """Test that scores come back in registry order."""
    scores = score_categories("Dell laptop")
    assert [category for category, _ in scores] == DEFAULT_REGISTRY.category_slugs
    assert dict(scores)["electronics"] == 2


def test_detect_category_basic():
    """Test category detection from deal text."""
    assert detect_category("Sony Headphones $199 (was $299)") == "electronics"
    assert detect_category("Nintendo Switch Pro Controller") == "gaming"
    assert detect_category("Prestige Mixer Grinder 750W") == "home-kitchen"
    assert detect_category("Lakme Sunscreen SPF 50 + Moisturizer") == "beauty"
    assert detect_category("Samsonite Suitcase luggage sale") == "travel"


def test_detect_category_weighted():
    """Test that specific keywords outweigh generic ones."""
    # electronics: laptop (2); fashion: bag (1)
    assert detect_category("laptop bag") == "electronics"


def test_detect_category_tie_goes_to_first_declared():
    """Test tie-breaking by declaration order."""
    scores = dict(score_categories("gpu"))
    assert scores["electronics"] == scores["gaming"] == 1
    assert detect_category("gpu") == "electronics"


def test_detect_category_default():
    """Test fallback when nothing matches."""
    assert detect_category("qwerty zzz") == "other"
    assert detect_category("") == "other"
    assert detect_category("qwerty zzz", default_category="misc") == "misc"


def test_detect_category_deterministic():
    """Test that repeated runs give identical results."""
    text = "Boat earbuds with fast charger and phone case"
    results = {detect_category(text) for _ in range(20)}
    assert len(results) == 1


def test_detect_category_custom_registry():
    """Test scoring against a custom keyword table."""
    registry = Registry(categories=[("pets", ["dog food", "cat litter"]), ("garden", ["hose"])])
    assert detect_category("Pedigree dog food 10kg", registry) == "pets"
    assert detect_category("Garden hose 20m", registry) == "garden"
    assert detect_category("Sony headphones", registry) == "other"
