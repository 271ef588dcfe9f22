# storefront/repos/search_repo.py
from datetime import datetime
from typing import Any, Dict, List, Tuple

from sqlalchemy import select, func, case, or_, delete
from sqlalchemy.orm import Session

from storefront.data.models.category import CategoryModel
from storefront.data.models.product import ProductModel
from storefront.data.models.search_history import SearchHistoryModel
from storefront.repos.analytics_repo import review_stats_subquery, sales_stats_subquery
from storefront.repos.query import ilike_contains, ilike_prefix


class SearchRepo:
    def __init__(self, db: Session):
        self.db = db

    # =====================================================
    # PRODUCT SEARCH
    # =====================================================
    def product_conditions(self, params) -> List[Any]:
        conditions = [ProductModel.is_active.is_(True)]
        if params.q:
            conditions.append(
                or_(
                    ilike_contains(ProductModel.name, params.q),
                    ilike_contains(ProductModel.description, params.q),
                    ilike_contains(ProductModel.brand, params.q),
                )
            )
        if params.category_ids is not None:
            conditions.append(ProductModel.category_id.in_(params.category_ids))
        if params.min_price is not None:
            conditions.append(ProductModel.price >= params.min_price)
        if params.max_price is not None:
            conditions.append(ProductModel.price <= params.max_price)
        if params.brand:
            conditions.append(ilike_contains(ProductModel.brand, params.brand))
        if params.in_stock:
            conditions.append(ProductModel.stock > 0)
        return conditions

    def search_products(self, params) -> Tuple[List[Dict[str, Any]], int]:
        reviews = review_stats_subquery()
        sales = sales_stats_subquery()

        avg_rating = func.coalesce(reviews.c.avg_rating, 0)
        review_count = func.coalesce(reviews.c.review_count, 0)
        total_sold = func.coalesce(sales.c.total_sold, 0)

        stmt = (
            select(
                ProductModel,
                CategoryModel.name.label("category_name"),
                avg_rating.label("avg_rating"),
                review_count.label("review_count"),
                total_sold.label("total_sold"),
            )
            .join(CategoryModel, CategoryModel.id == ProductModel.category_id)
            .outerjoin(reviews, reviews.c.product_id == ProductModel.id)
            .outerjoin(sales, sales.c.product_id == ProductModel.id)
            .where(*self.product_conditions(params))
        )
        if params.min_rating is not None:
            stmt = stmt.where(avg_rating >= params.min_rating)

        total = self.db.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()

        stmt = stmt.order_by(*self._ordering(params, avg_rating, total_sold), ProductModel.id)
        rows = self.db.execute(
            stmt.limit(params.limit).offset((params.page - 1) * params.limit)
        ).all()

        return [
            {
                "product": row[0],
                "category_name": row.category_name,
                "avg_rating": row.avg_rating,
                "review_count": row.review_count,
                "total_sold": row.total_sold,
            }
            for row in rows
        ], total

    def _ordering(self, params, avg_rating, total_sold) -> List[Any]:
        sort_by = params.sort_by
        if sort_by == "price_low":
            return [ProductModel.price.asc()]
        if sort_by == "price_high":
            return [ProductModel.price.desc()]
        if sort_by == "rating":
            return [avg_rating.desc()]
        if sort_by == "newest":
            return [ProductModel.created_at.desc()]
        if sort_by == "popularity":
            return [total_sold.desc()]

        # relevance: trafienie na poczatku nazwy > w nazwie > reszta
        if params.q:
            rank = case(
                (ilike_prefix(ProductModel.name, params.q), 0),
                (ilike_contains(ProductModel.name, params.q), 1),
                else_=2,
            )
            return [rank.asc(), total_sold.desc()]
        return [total_sold.desc(), ProductModel.created_at.desc()]

    def facets(self, params) -> Dict[str, Any]:
        conditions = self.product_conditions(params)

        categories = self.db.execute(
            select(CategoryModel.id, CategoryModel.name, func.count(ProductModel.id).label("product_count"))
            .join(ProductModel, ProductModel.category_id == CategoryModel.id)
            .where(CategoryModel.is_active.is_(True), *conditions)
            .group_by(CategoryModel.id, CategoryModel.name)
            .having(func.count(ProductModel.id) > 0)
            .order_by(CategoryModel.name)
        ).all()

        brands = self.db.execute(
            select(ProductModel.brand, func.count(ProductModel.id).label("count"))
            .where(ProductModel.brand.is_not(None), *conditions)
            .group_by(ProductModel.brand)
            .order_by(func.count(ProductModel.id).desc(), ProductModel.brand)
            .limit(20)
        ).all()

        min_price, max_price = self.db.execute(
            select(func.min(ProductModel.price), func.max(ProductModel.price)).where(*conditions)
        ).one()

        return {
            "categories": [
                {"id": c.id, "name": c.name, "product_count": c.product_count} for c in categories
            ],
            "brands": [{"brand": b.brand, "count": b.count} for b in brands],
            "price_range": {"min": min_price or 0, "max": max_price or 0},
        }

    def category_ids_matching(self, category: str) -> List[int]:
        conditions = [ilike_contains(CategoryModel.name, category)]
        if category.isdigit():
            conditions.append(CategoryModel.id == int(category))
        return list(self.db.execute(select(CategoryModel.id).where(or_(*conditions))).scalars().all())

    # =====================================================
    # SUGGESTIONS
    # =====================================================
    def suggestion_sources(self, q: str) -> Tuple[List[Tuple[str, str | None]], List[str]]:
        products = self.db.execute(
            select(ProductModel.name, ProductModel.brand)
            .where(
                ProductModel.is_active.is_(True),
                or_(ilike_contains(ProductModel.name, q), ilike_contains(ProductModel.brand, q)),
            )
            .group_by(ProductModel.name, ProductModel.brand)
            .order_by(ProductModel.name)
            .limit(8)
        ).all()
        categories = self.db.execute(
            select(CategoryModel.name)
            .where(CategoryModel.is_active.is_(True), ilike_contains(CategoryModel.name, q))
            .order_by(CategoryModel.name)
            .limit(5)
        ).scalars().all()
        return [(p.name, p.brand) for p in products], list(categories)

    # =====================================================
    # SEARCH HISTORY
    # =====================================================
    def get_history(self, query: str) -> SearchHistoryModel | None:
        return self.db.execute(
            select(SearchHistoryModel).where(SearchHistoryModel.query == query)
        ).scalar_one_or_none()

    def add_history(self, entry: SearchHistoryModel) -> SearchHistoryModel:
        self.db.add(entry)
        self.db.flush()
        return entry

    def popular(self, limit: int) -> List[SearchHistoryModel]:
        return list(
            self.db.execute(
                select(SearchHistoryModel).order_by(*self._history_rank()).limit(limit)
            ).scalars().all()
        )

    def _history_rank(self):
        return (
            SearchHistoryModel.search_count.desc(),
            SearchHistoryModel.last_searched_at.desc(),
            SearchHistoryModel.id.asc(),
        )

    def evict_beyond(self, keep: int) -> int:
        # LIMIT owiniete w tabele pochodna, MySQL nie pozwala na LIMIT bezposrednio w IN
        ranked = select(SearchHistoryModel.id).order_by(*self._history_rank()).limit(keep).subquery()
        result = self.db.execute(
            delete(SearchHistoryModel)
            .where(SearchHistoryModel.id.not_in(select(ranked.c.id)))
            .execution_options(synchronize_session=False)
        )
        self.db.flush()
        return result.rowcount

    def count_history(self) -> int:
        return self.db.execute(select(func.count(SearchHistoryModel.id))).scalar_one()

    def touch(self, entry: SearchHistoryModel, now: datetime):
        entry.search_count = SearchHistoryModel.search_count + 1
        entry.last_searched_at = now
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
