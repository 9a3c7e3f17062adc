"""Ordered pattern tables used by the extraction pipeline.

Every table is a list of ``(label, patterns)`` pairs. Matching code walks
the tables in declaration order, so the first entry wins ties.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern, Sequence, Tuple, Union

from .models import Currency


class RegistryError(Exception):
    """Raised when a registry file cannot be loaded."""
    pass


def _compile(*patterns: str) -> List[Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


# Store patterns for e-commerce sites (international first, then India)
STORE_PATTERNS: List[Tuple[str, List[Pattern[str]]]] = [
    ("Amazon", _compile(
        r'amazon\.in', r'amazon\.com', r'amazon\.co\.uk', r'amazon\.de',
        r'amazon\.ca', r'amazon\.com\.au', r'amzn\.to', r'amzn\.com',
    )),
    ("Steam", _compile(r'store\.steampowered\.com', r'steampowered\.com')),
    ("Epic Games", _compile(r'epicgames\.com', r'store\.epicgames\.com')),
    ("GOG", _compile(r'gog\.com')),
    ("Humble Bundle", _compile(r'humblebundle\.com')),
    ("PlayStation", _compile(r'store\.playstation\.com', r'playstation\.com')),
    ("Xbox", _compile(r'xbox\.com', r'microsoft\.com/store')),
    ("Nintendo", _compile(r'nintendo\.com')),
    ("Best Buy", _compile(r'bestbuy\.com', r'bestbuy\.ca')),
    ("Walmart", _compile(r'walmart\.com', r'walmart\.ca')),
    ("Target", _compile(r'target\.com')),
    ("Newegg", _compile(r'newegg\.com')),
    ("B&H Photo", _compile(r'bhphotovideo\.com')),
    ("eBay", _compile(r'ebay\.com', r'ebay\.co\.uk')),
    ("AliExpress", _compile(r'aliexpress\.com')),
    ("Flipkart", _compile(r'flipkart\.com', r'fkrt\.it')),
    ("Myntra", _compile(r'myntra\.com')),
    ("Ajio", _compile(r'ajio\.com')),
    ("Nykaa", _compile(r'nykaa\.com')),
    ("Croma", _compile(r'croma\.com')),
    ("Reliance", _compile(r'reliancedigital\.in', r'jiomart\.com')),
    ("Tata", _compile(r'tatacliq\.com', r'bigbasket\.com')),
    ("Paytm", _compile(r'paytmmall\.com')),
    ("Shopclues", _compile(r'shopclues\.com')),
    ("Snapdeal", _compile(r'snapdeal\.com')),
    ("Meesho", _compile(r'meesho\.com')),
    ("Blinkit", _compile(r'blinkit\.com')),
    ("Zepto", _compile(r'zepto\.co')),
    ("Swiggy", _compile(r'swiggy\.com', r'instamart')),
]


# Category keywords, scored by substring match on lower-cased text
CATEGORY_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("electronics", [
        "laptop", "phone", "mobile", "tablet", "headphone", "earphone", "earbud",
        "speaker", "tv", "television", "monitor", "camera", "smartwatch", "watch",
        "charger", "powerbank", "ssd", "hdd", "ram", "processor", "gpu", "keyboard",
        "mouse", "router", "wifi", "bluetooth", "usb", "hdmi", "adapter",
    ]),
    ("fashion", [
        "clothing", "apparel", "fashion", "shirt", "tshirt", "t-shirt", "jeans",
        "trouser", "trousers", "pant", "pants", "dress", "dresses", "kurta", "saree",
        "lehenga", "jacket", "hoodie", "sweater", "shoe", "shoes", "sneaker",
        "sneakers", "sandal", "slipper", "bag", "handbag", "wallet", "belt",
        "sunglass", "sunglasses", "women", "men", "kids", "flat off", "% off on",
    ]),
    ("gaming", [
        "game", "gaming", "ps5", "playstation", "xbox", "nintendo", "switch",
        "controller", "joystick", "gaming mouse", "gaming keyboard", "gaming headset",
        "steam", "epic games", "gpu", "graphics card", "rtx", "gtx",
    ]),
    ("home-kitchen", [
        "kitchen", "cookware", "utensil", "mixer", "grinder", "blender", "microwave",
        "oven", "refrigerator", "fridge", "washing machine", "ac", "air conditioner",
        "fan", "cooler", "heater", "vacuum", "iron", "mattress", "pillow", "bedsheet",
        "curtain", "furniture", "sofa", "chair", "table", "lamp", "light",
    ]),
    ("beauty", [
        "beauty", "skincare", "makeup", "cosmetic", "lipstick", "foundation",
        "mascara", "perfume", "fragrance", "shampoo", "conditioner", "hair",
        "moisturizer", "serum", "sunscreen", "face wash", "lotion", "cream",
    ]),
    ("food-groceries", [
        "food", "grocery", "snack", "chocolate", "biscuit", "chips", "drink",
        "beverage", "coffee", "tea", "rice", "dal", "oil", "masala", "spice",
        "fruit", "vegetable", "meat", "chicken", "fish", "dairy", "milk", "curd",
    ]),
    ("mobile-accessories", [
        "mobile cover", "phone case", "screen protector", "tempered glass",
        "mobile stand", "phone holder", "car mount", "wireless charger",
        "fast charger", "data cable", "usb cable", "type-c", "lightning",
        "airpods", "buds",
    ]),
    ("books-stationery", [
        "book", "novel", "textbook", "notebook", "diary", "pen", "pencil", "marker",
        "highlighter", "eraser", "sharpener", "ruler", "calculator", "backpack",
        "school bag", "stationery", "art supply",
    ]),
    ("travel", [
        "flight", "hotel", "booking", "travel", "trip", "vacation", "holiday",
        "luggage", "suitcase", "trolley", "passport", "visa", "ticket", "train",
        "bus", "cab", "uber", "ola", "makemytrip", "goibibo", "cleartrip",
    ]),
]


_AMOUNT = r'([\d,]+(?:\.\d{2})?)'

# Single price patterns, tried in order
CURRENCY_PATTERNS: List[Tuple[Currency, List[Pattern[str]]]] = [
    (Currency.USD, [re.compile(r'\$\s*' + _AMOUNT)]),
    (Currency.EUR, [re.compile('€\\s*' + _AMOUNT)]),
    (Currency.GBP, [re.compile('£\\s*' + _AMOUNT)]),
    (Currency.CAD, _compile(r'C\$\s*' + _AMOUNT, r'CAD\s*' + _AMOUNT)),
    (Currency.AUD, _compile(r'A\$\s*' + _AMOUNT, r'AUD\s*' + _AMOUNT)),
    (Currency.INR, [
        re.compile('₹\\s*' + _AMOUNT),
        re.compile(r'Rs\.?\s*' + _AMOUNT, re.IGNORECASE),
        re.compile(r'INR\s*' + _AMOUNT, re.IGNORECASE),
    ]),
]

# "$99 (was $199)" style pairs; the two amounts may appear in either order
PRICE_PAIR_PATTERNS: List[Tuple[Currency, List[Pattern[str]]]] = [
    (Currency.USD, _compile(r'\$\s*([\d,]+).*?(?:was|from|original|reg).*?\$\s*([\d,]+)')),
    (Currency.EUR, _compile('€\\s*([\\d,]+).*?(?:was|from|original|reg).*?€\\s*([\\d,]+)')),
    (Currency.GBP, _compile('£\\s*([\\d,]+).*?(?:was|from|original|reg).*?£\\s*([\\d,]+)')),
    (Currency.INR, _compile('₹\\s*([\\d,]+).*?(?:mrp|was|from|original|reg).*?₹?\\s*([\\d,]+)')),
    (Currency.INR, _compile(r'Rs\.?\s*([\d,]+).*?(?:mrp|was|from|original|reg).*?Rs\.?\s*([\d,]+)')),
]

# Explicit "N% off" claims
DISCOUNT_PATTERN: Pattern[str] = re.compile(r'(\d{1,2})\s*%\s*(?:off|discount)', re.IGNORECASE)

# URLs that never point at a product page (Reddit media, image hosts, images)
SKIP_URL_PATTERNS: List[Pattern[str]] = _compile(
    r'reddit\.com/media',
    r'i\.redd\.it',
    r'preview\.redd\.it',
    r'v\.redd\.it',
    r'reddit\.com/gallery',
    r'imgur\.com',
    r'\.jpg$',
    r'\.jpeg$',
    r'\.png$',
    r'\.gif$',
    r'\.webp$',
)

# Titles that mark a post as discussion rather than a deal
NON_DEAL_TITLE_PATTERNS: List[Pattern[str]] = _compile(
    r'\[meta\]',
    r'\[question\]',
    r'\[discussion\]',
    r'looking for',
    r'suggest me',
    r'help needed',
    r'which one',
)

# Filler phrases stripped from display titles
TITLE_FILLER_PATTERN: Pattern[str] = re.compile(
    r'(link\s+in\s+comments|check\s+comments|see\s+below|read\s+caption)',
    re.IGNORECASE,
)


class Registry:
    """Bundle of the pattern tables, overridable from a YAML file."""

    def __init__(
        self,
        stores: Optional[Sequence[Tuple[str, List[Pattern[str]]]]] = None,
        categories: Optional[Sequence[Tuple[str, List[str]]]] = None,
        currencies: Optional[Sequence[Tuple[Currency, List[Pattern[str]]]]] = None,
        price_pairs: Optional[Sequence[Tuple[Currency, List[Pattern[str]]]]] = None,
        skip_urls: Optional[Sequence[Pattern[str]]] = None,
        non_deal_titles: Optional[Sequence[Pattern[str]]] = None,
    ):
        self.stores = list(stores if stores is not None else STORE_PATTERNS)
        self.categories = list(categories if categories is not None else CATEGORY_KEYWORDS)
        self.currencies = list(currencies if currencies is not None else CURRENCY_PATTERNS)
        self.price_pairs = list(price_pairs if price_pairs is not None else PRICE_PAIR_PATTERNS)
        self.skip_urls = list(skip_urls if skip_urls is not None else SKIP_URL_PATTERNS)
        self.non_deal_titles = list(
            non_deal_titles if non_deal_titles is not None else NON_DEAL_TITLE_PATTERNS
        )

    @property
    def store_names(self) -> List[str]:
        return [name for name, _ in self.stores]

    @property
    def category_slugs(self) -> List[str]:
        return [slug for slug, _ in self.categories]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Registry":
        """Build a registry from plain data, keeping defaults for missing tables.

        Expected shape::

            stores:
              - name: Amazon
                patterns: ['amazon\\.in', 'amzn\\.to']
            categories:
              - slug: electronics
                keywords: [laptop, phone]
            skip_urls: ['imgur\\.com']
            non_deal_titles: ['\\[meta\\]']
        """
        try:
            stores = None
            if 'stores' in data:
                stores = [(entry['name'], _compile(*entry['patterns'])) for entry in data['stores']]

            categories = None
            if 'categories' in data:
                categories = [
                    (entry['slug'], [str(k).lower() for k in entry['keywords']])
                    for entry in data['categories']
                ]

            skip_urls = _compile(*data['skip_urls']) if 'skip_urls' in data else None
            non_deal_titles = (
                _compile(*data['non_deal_titles']) if 'non_deal_titles' in data else None
            )
        except (KeyError, TypeError) as e:
            raise RegistryError(f"Malformed registry entry: {e}")
        except re.error as e:
            raise RegistryError(f"Invalid pattern in registry: {e}")

        return cls(
            stores=stores,
            categories=categories,
            skip_urls=skip_urls,
            non_deal_titles=non_deal_titles,
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "Registry":
        """Load registry overrides from a YAML file."""
        import yaml

        path = Path(path)
        if not path.exists():
            raise RegistryError(f"Registry file not found: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RegistryError(f"Invalid YAML in {path}: {e}")

        if not isinstance(data, dict):
            raise RegistryError(f"Registry file must contain a mapping: {path}")

        return cls.from_dict(data)


# Shared default registry
DEFAULT_REGISTRY = Registry()
