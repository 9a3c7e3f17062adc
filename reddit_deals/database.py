"""Database utilities for storing parsed deals."""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import dataset
import structlog

from .models import ParsedDeal

logger = structlog.get_logger()

DEFAULT_DB_URL = "sqlite:///data/deals.db"


class DealStore:
    """Persists parsed deals, keyed by the post they came from."""

    def __init__(self, db_url: str = DEFAULT_DB_URL):
        """Initialize the store and make sure the deals table exists."""
        self.db_url = db_url
        self.db = None
        self._setup_database()

    def _setup_database(self) -> None:
        """Set up database connection and tables."""
        if self.db_url.startswith("sqlite:///"):
            db_path = Path(self.db_url.replace("sqlite:///", ""))
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db = dataset.connect(self.db_url)
        self.deals = self.db['deals']

        # Columns queried before any deal is classified
        self.deals.create_column_by_example('dedup_key', '')
        self.deals.create_column_by_example('category_slug', '')
        self.deals.create_column_by_example('store', '')
        self.deals.create_column_by_example('deal_price', 0.0)
        self.deals.create_column_by_example('original_price', 0.0)
        self.deals.create_column_by_example('discount_percent', 0)
        self.deals.create_column_by_example('source_score', 0)
        self.deals.create_column_by_example('clean_title', '')
        self.deals.create_column_by_example('brand', '')
        self.deals.create_column_by_example('title_processed_at', datetime.utcnow())
        self.deals.create_column_by_example('last_seen', datetime.utcnow())

    def _deal_to_row(self, deal: ParsedDeal) -> Dict[str, Any]:
        row = deal.to_dict()
        row.pop('savings_amount', None)
        # REAL columns so prices filter and sort numerically
        for field in ('deal_price', 'original_price'):
            value = getattr(deal, field)
            row[field] = float(value) if value is not None else None
        row['last_seen'] = datetime.utcnow()
        return row

    def save_deal(self, deal: ParsedDeal) -> bool:
        """Insert or update a deal."""
        row = self._deal_to_row(deal)
        try:
            existing = self.deals.find_one(dedup_key=deal.dedup_key)
            if existing and existing.get('title_processed_at') is not None:
                # Keep the classifier's category
                row.pop('category_slug', None)
            self.deals.upsert(row, ['dedup_key'])
            return True
        except Exception as e:
            logger.error("Error saving deal", dedup_key=deal.dedup_key, error=str(e))
            return False

    def save_deals(self, deals: List[ParsedDeal]) -> int:
        """Save multiple deals, returning how many were stored."""
        saved_count = 0
        for deal in deals:
            if self.save_deal(deal):
                saved_count += 1
        return saved_count

    def get_deal(self, dedup_key: str) -> Optional[Dict[str, Any]]:
        """Get a stored deal row by its dedup key."""
        return self.deals.find_one(dedup_key=dedup_key)

    def get_deals(
        self,
        store: Optional[str] = None,
        category: Optional[str] = None,
        min_discount: Optional[int] = None,
        max_price: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Get stored deals with optional filtering, newest first."""
        filters: Dict[str, Any] = {}
        if store:
            filters['store'] = store
        if category:
            filters['category_slug'] = category
        if min_discount:
            filters['discount_percent'] = {'>=': min_discount}
        if max_price is not None:
            filters['deal_price'] = {'<=': float(max_price)}

        rows = self.deals.find(order_by=['-last_seen'], _limit=limit, **filters)
        return [dict(row) for row in rows]

    def get_unclassified_deals(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Deals whose titles have not been through the classifier yet."""
        rows = self.deals.find(title_processed_at=None, order_by=['-last_seen'], _limit=limit)
        return [dict(row) for row in rows]

    def mark_title_processed(
        self,
        dedup_key: str,
        clean_title: Optional[str] = None,
        brand: Optional[str] = None,
        category_slug: Optional[str] = None,
    ) -> bool:
        """Record the classifier's result for a deal."""
        row: Dict[str, Any] = {
            'dedup_key': dedup_key,
            'title_processed_at': datetime.utcnow(),
        }
        if clean_title is not None:
            row['clean_title'] = clean_title
            row['brand'] = brand
        if category_slug is not None:
            row['category_slug'] = category_slug

        return bool(self.deals.update(row, ['dedup_key']))

    def get_deal_count(self) -> int:
        """Get total number of deals in database."""
        return self.deals.count()

    def get_store_stats(self) -> Dict[str, Dict[str, Any]]:
        """Get deal counts and average discount per store."""
        stats: Dict[str, Dict[str, Any]] = {}
        for row in self.deals.all():
            store = row.get('store') or 'Unknown'
            entry = stats.setdefault(store, {'total_deals': 0, 'discounts': []})
            entry['total_deals'] += 1
            if row.get('discount_percent') is not None:
                entry['discounts'].append(row['discount_percent'])

        for entry in stats.values():
            discounts = entry.pop('discounts')
            entry['avg_discount'] = sum(discounts) / len(discounts) if discounts else 0.0

        return stats

    def close(self) -> None:
        """Close database connections."""
        if self.db:
            self.db.close()
            self.db = None


# Global database instance
_store: Optional[DealStore] = None


def get_database(db_url: str = DEFAULT_DB_URL) -> DealStore:
    """Get global deal store instance."""
    global _store
    if _store is None:
        _store = DealStore(db_url)
    return _store


def close_database() -> None:
    """Close global database connection."""
    global _store
    if _store:
        _store.close()
        _store = None
