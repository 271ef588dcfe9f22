# storefront/repos/product_repo.py
from typing import List, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from storefront.data.models.category import CategoryModel
from storefront.data.models.product import ProductModel
from storefront.domain.query import QuerySpec
from storefront.repos.query import apply_filters, apply_sort, count_rows

# kolumny dostepne dla filtrow / sortowania z query stringa
PRODUCT_COLUMNS = {
    "name": ProductModel.name,
    "price": ProductModel.price,
    "brand": ProductModel.brand,
    "stock": ProductModel.stock,
    "category_id": ProductModel.category_id,
    "average_rating": ProductModel.average_rating,
    "created_at": ProductModel.created_at,
}


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_active_product(self, product_id: int) -> ProductModel | None:
        return self.db.execute(
            select(ProductModel)
            .options(joinedload(ProductModel.category))
            .where(ProductModel.id == product_id, ProductModel.is_active.is_(True))
        ).scalar_one_or_none()

    def lock_products(self, product_ids: Sequence[int]) -> dict[int, ProductModel]:
        """
        SELECT ... FOR UPDATE na wierszach produktow.
        Zawsze w kolejnosci id, zeby dwa rownolegle zamowienia nie zakleszczyly sie.
        populate_existing nadpisuje obiekty juz siedzace w sesji swiezym stanem z bazy.
        """
        rows = self.db.execute(
            select(ProductModel)
            .where(ProductModel.id.in_(sorted(set(product_ids))))
            .order_by(ProductModel.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {p.id: p for p in rows}

    def list_products(self, spec: QuerySpec, category_id: int | None = None) -> Tuple[List[ProductModel], int]:
        stmt = select(ProductModel).where(ProductModel.is_active.is_(True))
        if category_id is not None:
            stmt = stmt.where(ProductModel.category_id == category_id)
        stmt = apply_filters(stmt, PRODUCT_COLUMNS, spec)

        total = count_rows(self.db, stmt)

        stmt = apply_sort(stmt, PRODUCT_COLUMNS, spec).options(joinedload(ProductModel.category))
        rows = self.db.execute(stmt.limit(spec.limit).offset(spec.offset)).scalars().all()
        return list(rows), total

    def low_stock_products(self, threshold: int) -> List[ProductModel]:
        return list(
            self.db.execute(
                select(ProductModel)
                .where(ProductModel.stock <= threshold, ProductModel.is_active.is_(True))
                .order_by(ProductModel.stock.asc())
            ).scalars().all()
        )

    def add_product(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.flush()
        return product

    # ---- categories ----
    def get_category(self, category_id: int) -> CategoryModel | None:
        return self.db.get(CategoryModel, category_id)

    def get_category_by_name(self, name: str) -> CategoryModel | None:
        return self.db.execute(
            select(CategoryModel).where(CategoryModel.name == name)
        ).scalar_one_or_none()

    def list_categories(self) -> List[CategoryModel]:
        return list(
            self.db.execute(
                select(CategoryModel).where(CategoryModel.is_active.is_(True)).order_by(CategoryModel.name)
            ).scalars().all()
        )

    def add_category(self, category: CategoryModel) -> CategoryModel:
        self.db.add(category)
        self.db.flush()
        return category

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
