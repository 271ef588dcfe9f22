# storefront/services/search_service.py
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.search_history import SearchHistoryModel
from storefront.domain.schemas import paginate
from storefront.repos.search_repo import SearchRepo
from storefront.services.catalog_service import product_to_dict
from storefront.utils.errors import BadRequestError
from storefront.utils.settings import SEARCH_HISTORY_LIMIT
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

SORT_OPTIONS = ("relevance", "price_low", "price_high", "rating", "newest", "popularity")


@dataclass
class SearchParams:
    q: Optional[str] = None
    category: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    brand: Optional[str] = None
    in_stock: bool = False
    min_rating: Optional[Decimal] = None
    sort_by: str = "relevance"
    page: int = 1
    limit: int = 20
    # wypelniane przez serwis z parametru category
    category_ids: Optional[List[int]] = None

    def validate(self):
        if self.sort_by not in SORT_OPTIONS:
            raise BadRequestError(f"Invalid sort_by '{self.sort_by}', expected one of: {', '.join(SORT_OPTIONS)}")
        if self.page < 1 or self.limit < 1:
            raise BadRequestError("page and limit must be at least 1")
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise BadRequestError("min_price cannot be greater than max_price")
        if self.q:
            self.q = self.q.strip()


def normalize_query(query: str | None) -> str:
    return (query or "").strip().lower()


class SearchService:
    def __init__(self, db: Session):
        self.repo = SearchRepo(db)

    def search_products(self, params: SearchParams) -> Dict[str, Any]:
        params.validate()
        if params.category:
            params.category_ids = self.repo.category_ids_matching(params.category)

        rows, total = self.repo.search_products(params)
        products = [
            {
                **product_to_dict(row["product"]),
                "category_name": row["category_name"],
                "avg_rating": round(float(row["avg_rating"] or 0), 2),
                "review_count": int(row["review_count"] or 0),
                "total_sold": int(row["total_sold"] or 0),
            }
            for row in rows
        ]
        return {
            "products": products,
            "facets": self.repo.facets(params),
            "pagination": paginate(params.page, params.limit, total),
        }

    def suggestions(self, q: str | None) -> List[str]:
        q = (q or "").strip()
        if len(q) < 2:
            return []

        products, categories = self.repo.suggestion_sources(q)
        candidates = [name for name, _ in products]
        candidates += [brand for _, brand in products if brand]
        candidates += categories

        # unikalne, w kolejnosci wystapienia, max 10
        return list(dict.fromkeys(candidates))[:10]

    def track_search(self, query: str | None) -> bool:
        term = normalize_query(query)
        if len(term) <= 2:
            return False

        now = datetime.now(timezone.utc)
        try:
            entry = self.repo.get_history(term)
            if entry:
                self.repo.touch(entry, now)
            else:
                self.repo.add_history(SearchHistoryModel(query=term, search_count=1, last_searched_at=now))
            self.repo.commit()
        except IntegrityError:
            # rownolegly insert tego samego zapytania, wystarczy podbic licznik
            self.repo.rollback()
            self.repo.touch(self.repo.get_history(term), now)
            self.repo.commit()
        return True

    def popular_searches(self, limit: int = 10) -> List[Dict[str, Any]]:
        return [{"term": e.query, "count": e.search_count} for e in self.repo.popular(limit)]

    def cleanup_search_history(self, keep: int = SEARCH_HISTORY_LIMIT) -> int:
        """Zostawia dokladnie top-N wg (search_count desc, last_searched_at desc, id asc)."""
        try:
            removed = self.repo.evict_beyond(keep)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise
        logger.info(f"Search history: usunieto {removed} wpisow, zostalo max {keep}")
        return removed
