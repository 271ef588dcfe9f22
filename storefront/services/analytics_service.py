# storefront/services/analytics_service.py
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from storefront.domain.schemas import paginate
from storefront.repos.analytics_repo import AnalyticsRepo
from storefront.repos.product_repo import ProductRepo
from storefront.utils.errors import BadRequestError, NotFoundError
from storefront.utils.settings import LOW_STOCK_THRESHOLD
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PERIODS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
}

USER_SORT_KEYS = frozenset({"name", "created_at", "total_orders", "total_spent", "avg_order_value", "last_order_date"})
PRODUCT_SORT_KEYS = frozenset(
    {"name", "price", "stock", "total_sold", "total_revenue", "avg_rating", "review_count"}
)


def _since(period: str) -> datetime:
    try:
        return datetime.now(timezone.utc) - PERIODS[period]
    except KeyError:
        raise BadRequestError(f"Invalid period '{period}', expected one of: {', '.join(PERIODS)}")


def _check_sort(sort_by: str, order: str, allowed: frozenset) -> str:
    if sort_by not in allowed:
        raise BadRequestError(f"Sorting by '{sort_by}' is not allowed")
    order = order.lower()
    if order not in ("asc", "desc"):
        raise BadRequestError("order must be 'asc' or 'desc'")
    return order


class AnalyticsService:
    """Raporty dla admina. Przychod = zamowienia processing / shipped / delivered."""

    def __init__(self, db: Session):
        self.repo = AnalyticsRepo(db)
        self.product_repo = ProductRepo(db)

    def dashboard(self) -> Dict[str, Any]:
        week_ago = datetime.now(timezone.utc) - timedelta(days=7)
        return {
            "overview": {
                "total_users": self.repo.count_users(),
                "total_orders": self.repo.count_orders(),
                "total_products": self.repo.count_active_products(),
                "total_revenue": self.repo.revenue(),
                "pending_orders": self.repo.count_orders(statuses=("pending", "processing")),
            },
            "recent_orders": self.repo.recent_orders(10, since=week_ago),
            "low_stock_products": self.repo.low_stock(LOW_STOCK_THRESHOLD, 10),
            "top_selling_products": self.repo.top_selling(10),
        }

    def sales(self, period: str = "30d") -> Dict[str, Any]:
        since = _since(period)
        return {
            "period": period,
            "sales_trend": self.repo.sales_trend(since),
            "category_performance": self.repo.category_performance(since),
            "payment_methods": self.repo.payment_method_stats(since),
            "customer_segments": self.repo.customer_segments(since),
        }

    def users(self, sort_by: str, order: str, page: int, limit: int) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        order = _check_sort(sort_by, order, USER_SORT_KEYS)
        rows = self.repo.user_analytics(sort_by, order, limit, (page - 1) * limit)
        return rows, paginate(page, limit, self.repo.count_users())

    def products(self, sort_by: str, order: str, page: int, limit: int) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        order = _check_sort(sort_by, order, PRODUCT_SORT_KEYS)
        rows = self.repo.product_analytics(sort_by, order, limit, (page - 1) * limit)
        return rows, paginate(page, limit, self.repo.count_active_products())

    def product_detail(self, product_id: int) -> Dict[str, Any]:
        data = self.live_product(product_id)
        if data is None:
            raise NotFoundError("Product not found")
        return data

    # ---- kanal live ----
    def live_dashboard(self) -> Dict[str, Any]:
        return {
            "total_revenue": self.repo.revenue(),
            "total_orders": self.repo.count_orders(),
            "total_users": self.repo.count_users(),
            "recent_orders": self.repo.recent_orders(5),
            "top_products": self.repo.top_selling(5),
        }

    def live_product(self, product_id: int) -> Dict[str, Any] | None:
        product = self.product_repo.get_product(product_id)
        if not product:
            return None
        since = datetime.now(timezone.utc) - timedelta(days=30)
        return {
            "product_id": product.id,
            "product_name": product.name,
            "sales_data": self.repo.product_daily_sales(product.id, since),
            "review_stats": self.repo.product_review_stats(product.id),
            "current_stock": product.stock,
        }

    def weekly_report(self) -> Dict[str, Any]:
        since = datetime.now(timezone.utc) - timedelta(days=7)
        report = {
            "since": since,
            "revenue": self.repo.revenue(since=since),
            "orders": self.repo.count_orders(since=since),
            "new_users": self.repo.count_users(since=since),
            "top_products": self.repo.top_selling(5, since=since),
        }
        logger.info(
            f"Raport tygodniowy: przychod {report['revenue']}, zamowien {report['orders']}, "
            f"nowych userow {report['new_users']}"
        )
        return report
