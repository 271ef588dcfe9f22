# storefront/repos/analytics_repo.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import select, func, case, desc, asc
from sqlalchemy.orm import Session

from storefront.data.models.category import CategoryModel
from storefront.data.models.order import OrderModel, REVENUE_STATUSES
from storefront.data.models.order_item import OrderItemModel
from storefront.data.models.product import ProductModel
from storefront.data.models.review import ReviewModel
from storefront.data.models.user import UserModel


def review_stats_subquery():
    return (
        select(
            ReviewModel.product_id.label("product_id"),
            func.avg(ReviewModel.rating).label("avg_rating"),
            func.count(ReviewModel.id).label("review_count"),
        )
        .where(ReviewModel.is_active.is_(True))
        .group_by(ReviewModel.product_id)
        .subquery("review_stats")
    )


def sales_stats_subquery(since: datetime | None = None):
    stmt = (
        select(
            OrderItemModel.product_id.label("product_id"),
            func.sum(OrderItemModel.quantity).label("total_sold"),
            func.sum(OrderItemModel.price * OrderItemModel.quantity).label("total_revenue"),
        )
        .join(OrderModel, OrderModel.id == OrderItemModel.order_id)
        .where(OrderModel.status.in_(REVENUE_STATUSES))
        .group_by(OrderItemModel.product_id)
    )
    if since is not None:
        stmt = stmt.where(OrderModel.created_at >= since)
    return stmt.subquery("sales_stats")


def _rows(result) -> List[Dict[str, Any]]:
    return [dict(row._mapping) for row in result]


class AnalyticsRepo:
    """Tylko odczyt, agregaty liczone w SQL."""

    def __init__(self, db: Session):
        self.db = db

    # =====================================================
    # TOTALS
    # =====================================================
    def count_users(self, since: datetime | None = None) -> int:
        stmt = select(func.count(UserModel.id))
        if since is not None:
            stmt = stmt.where(UserModel.created_at >= since)
        return self.db.execute(stmt).scalar_one()

    def count_orders(self, statuses=None, since: datetime | None = None) -> int:
        stmt = select(func.count(OrderModel.id))
        if statuses:
            stmt = stmt.where(OrderModel.status.in_(statuses))
        if since is not None:
            stmt = stmt.where(OrderModel.created_at >= since)
        return self.db.execute(stmt).scalar_one()

    def count_active_products(self) -> int:
        return self.db.execute(
            select(func.count(ProductModel.id)).where(ProductModel.is_active.is_(True))
        ).scalar_one()

    def revenue(self, since: datetime | None = None) -> Decimal:
        stmt = select(func.coalesce(func.sum(OrderModel.total_amount), 0)).where(
            OrderModel.status.in_(REVENUE_STATUSES)
        )
        if since is not None:
            stmt = stmt.where(OrderModel.created_at >= since)
        return Decimal(str(self.db.execute(stmt).scalar_one()))

    def recent_orders(self, limit: int, since: datetime | None = None) -> List[Dict[str, Any]]:
        stmt = (
            select(
                OrderModel.id,
                OrderModel.total_amount,
                OrderModel.status,
                OrderModel.payment_status,
                OrderModel.created_at,
                UserModel.id.label("user_id"),
                UserModel.name.label("user_name"),
            )
            .join(UserModel, UserModel.id == OrderModel.user_id)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .limit(limit)
        )
        if since is not None:
            stmt = stmt.where(OrderModel.created_at >= since)
        return _rows(self.db.execute(stmt))

    def low_stock(self, threshold: int, limit: int) -> List[Dict[str, Any]]:
        return _rows(
            self.db.execute(
                select(ProductModel.id, ProductModel.name, ProductModel.stock, ProductModel.price)
                .where(ProductModel.stock <= threshold, ProductModel.is_active.is_(True))
                .order_by(ProductModel.stock.asc(), ProductModel.id)
                .limit(limit)
            )
        )

    def top_selling(self, limit: int, since: datetime | None = None) -> List[Dict[str, Any]]:
        sales = sales_stats_subquery(since)
        return _rows(
            self.db.execute(
                select(
                    ProductModel.id,
                    ProductModel.name,
                    ProductModel.price,
                    sales.c.total_sold,
                    sales.c.total_revenue,
                )
                .join(sales, sales.c.product_id == ProductModel.id)
                .where(ProductModel.is_active.is_(True))
                .order_by(sales.c.total_sold.desc(), ProductModel.id)
                .limit(limit)
            )
        )

    # =====================================================
    # SALES ANALYTICS
    # =====================================================
    def sales_trend(self, since: datetime) -> List[Dict[str, Any]]:
        day = func.date(OrderModel.created_at)
        return _rows(
            self.db.execute(
                select(
                    day.label("date"),
                    func.count(OrderModel.id).label("order_count"),
                    func.sum(OrderModel.total_amount).label("revenue"),
                )
                .where(OrderModel.created_at >= since, OrderModel.status.in_(REVENUE_STATUSES))
                .group_by(day)
                .order_by(day)
            )
        )

    def category_performance(self, since: datetime) -> List[Dict[str, Any]]:
        revenue = func.sum(OrderItemModel.price * OrderItemModel.quantity)
        return _rows(
            self.db.execute(
                select(
                    CategoryModel.name.label("category"),
                    func.count(func.distinct(OrderModel.id)).label("order_count"),
                    func.sum(OrderItemModel.quantity).label("items_sold"),
                    revenue.label("revenue"),
                )
                .join(ProductModel, ProductModel.category_id == CategoryModel.id)
                .join(OrderItemModel, OrderItemModel.product_id == ProductModel.id)
                .join(OrderModel, OrderModel.id == OrderItemModel.order_id)
                .where(OrderModel.created_at >= since, OrderModel.status.in_(REVENUE_STATUSES))
                .group_by(CategoryModel.id, CategoryModel.name)
                .order_by(revenue.desc())
            )
        )

    def payment_method_stats(self, since: datetime) -> List[Dict[str, Any]]:
        usage = func.count(OrderModel.id)
        return _rows(
            self.db.execute(
                select(
                    OrderModel.payment_method,
                    usage.label("usage_count"),
                    func.sum(OrderModel.total_amount).label("total_amount"),
                )
                .where(OrderModel.created_at >= since, OrderModel.status.in_(REVENUE_STATUSES))
                .group_by(OrderModel.payment_method)
                .order_by(usage.desc())
            )
        )

    def customer_segments(self, since: datetime) -> List[Dict[str, Any]]:
        per_user = (
            select(
                OrderModel.user_id,
                func.count(OrderModel.id).label("order_count"),
                func.sum(OrderModel.total_amount).label("total_spent"),
            )
            .where(OrderModel.created_at >= since, OrderModel.status.in_(REVENUE_STATUSES))
            .group_by(OrderModel.user_id)
            .subquery("user_orders")
        )
        segment = case(
            (per_user.c.order_count == 1, "new"),
            (per_user.c.order_count.between(2, 5), "returning"),
            else_="loyal",
        )
        return _rows(
            self.db.execute(
                select(
                    segment.label("customer_type"),
                    func.count().label("customer_count"),
                    func.avg(per_user.c.total_spent).label("avg_spent"),
                )
                .group_by(segment)
                .order_by(segment)
            )
        )

    # =====================================================
    # USER / PRODUCT ANALYTICS
    # =====================================================
    def user_analytics(self, sort_by: str, direction: str, limit: int, offset: int) -> List[Dict[str, Any]]:
        per_user = (
            select(
                OrderModel.user_id,
                func.count(OrderModel.id).label("total_orders"),
                func.sum(OrderModel.total_amount).label("total_spent"),
                func.avg(OrderModel.total_amount).label("avg_order_value"),
                func.max(OrderModel.created_at).label("last_order_date"),
            )
            .where(OrderModel.status.in_(REVENUE_STATUSES))
            .group_by(OrderModel.user_id)
            .subquery("per_user")
        )
        columns = {
            "name": UserModel.name.label("name"),
            "created_at": UserModel.created_at.label("created_at"),
            "total_orders": func.coalesce(per_user.c.total_orders, 0).label("total_orders"),
            "total_spent": func.coalesce(per_user.c.total_spent, 0).label("total_spent"),
            "avg_order_value": func.coalesce(per_user.c.avg_order_value, 0).label("avg_order_value"),
            "last_order_date": per_user.c.last_order_date.label("last_order_date"),
        }
        order = desc if direction == "desc" else asc
        return _rows(
            self.db.execute(
                select(UserModel.id, UserModel.email, *columns.values())
                .outerjoin(per_user, per_user.c.user_id == UserModel.id)
                .order_by(order(columns[sort_by]), UserModel.id)
                .limit(limit)
                .offset(offset)
            )
        )

    def product_analytics(self, sort_by: str, direction: str, limit: int, offset: int) -> List[Dict[str, Any]]:
        sales = sales_stats_subquery()
        reviews = review_stats_subquery()
        columns = {
            "name": ProductModel.name.label("name"),
            "price": ProductModel.price.label("price"),
            "stock": ProductModel.stock.label("stock"),
            "total_sold": func.coalesce(sales.c.total_sold, 0).label("total_sold"),
            "total_revenue": func.coalesce(sales.c.total_revenue, 0).label("total_revenue"),
            "avg_rating": func.coalesce(reviews.c.avg_rating, 0).label("avg_rating"),
            "review_count": func.coalesce(reviews.c.review_count, 0).label("review_count"),
        }
        order = desc if direction == "desc" else asc
        return _rows(
            self.db.execute(
                select(ProductModel.id, CategoryModel.name.label("category"), *columns.values())
                .outerjoin(CategoryModel, CategoryModel.id == ProductModel.category_id)
                .outerjoin(sales, sales.c.product_id == ProductModel.id)
                .outerjoin(reviews, reviews.c.product_id == ProductModel.id)
                .where(ProductModel.is_active.is_(True))
                .order_by(order(columns[sort_by]), ProductModel.id)
                .limit(limit)
                .offset(offset)
            )
        )

    def product_daily_sales(self, product_id: int, since: datetime) -> List[Dict[str, Any]]:
        day = func.date(OrderModel.created_at)
        return _rows(
            self.db.execute(
                select(
                    day.label("date"),
                    func.sum(OrderItemModel.quantity).label("sold"),
                    func.sum(OrderItemModel.price * OrderItemModel.quantity).label("revenue"),
                )
                .join(OrderModel, OrderModel.id == OrderItemModel.order_id)
                .where(
                    OrderItemModel.product_id == product_id,
                    OrderModel.status.in_(REVENUE_STATUSES),
                    OrderModel.created_at >= since,
                )
                .group_by(day)
                .order_by(day)
            )
        )

    def product_review_stats(self, product_id: int) -> Dict[str, Any]:
        total, avg = self.db.execute(
            select(func.count(ReviewModel.id), func.avg(ReviewModel.rating)).where(
                ReviewModel.product_id == product_id, ReviewModel.is_active.is_(True)
            )
        ).one()
        return {"total_reviews": total, "avg_rating": float(avg) if avg is not None else 0.0}
