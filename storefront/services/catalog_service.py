# storefront/services/catalog_service.py
from typing import Any, Dict, List, Mapping, Tuple

from sqlalchemy.orm import Session

from storefront.data.models.category import CategoryModel
from storefront.data.models.product import ProductModel
from storefront.domain.query import FieldRule, parse_query_spec, to_decimal, to_int
from storefront.domain.schemas import paginate
from storefront.repos.product_repo import ProductRepo
from storefront.services.live_hub import LiveHub, live_hub
from storefront.utils.errors import ConflictError, NotFoundError
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

_COMPARE = frozenset({"eq", "ne", "gt", "gte", "lt", "lte"})

# allow-lista filtrow z query stringa: pole -> (rzutowanie, dozwolone operatory)
PRODUCT_FILTERS = {
    "price": FieldRule(to_decimal, _COMPARE | {"in"}),
    "stock": FieldRule(to_int, _COMPARE),
    "average_rating": FieldRule(to_decimal, _COMPARE),
    "category_id": FieldRule(to_int, frozenset({"eq", "ne", "in"})),
    "brand": FieldRule(str, frozenset({"eq", "ne", "like", "in"})),
    "name": FieldRule(str, frozenset({"eq", "like"})),
}
PRODUCT_SORT = frozenset({"name", "price", "stock", "average_rating", "created_at"})


def category_to_dict(category: CategoryModel) -> Dict[str, Any]:
    return {"id": category.id, "name": category.name, "description": category.description}


def product_to_dict(product: ProductModel) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price": product.price,
        "category_id": product.category_id,
        "category": category_to_dict(product.category) if product.category else None,
        "brand": product.brand,
        "stock": product.stock,
        "images": list(product.images or []),
        "average_rating": product.average_rating,
        "rating_count": product.rating_count,
        "is_active": product.is_active,
        "created_at": product.created_at,
    }


class CatalogService:
    def __init__(self, db: Session, hub: LiveHub | None = None):
        self.db = db
        self.repo = ProductRepo(db)
        self.hub = hub or live_hub

    # =====================================================
    # PRODUCTS
    # =====================================================
    def list_products(self, params: Mapping[str, str]) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        spec = parse_query_spec(params, PRODUCT_FILTERS, PRODUCT_SORT)

        category_id = None
        if params.get("category"):
            category = self.repo.get_category_by_name(params["category"])
            if not category:
                return [], paginate(spec.page, spec.limit, 0)
            category_id = category.id

        products, total = self.repo.list_products(spec, category_id=category_id)
        return [product_to_dict(p) for p in products], paginate(spec.page, spec.limit, total)

    def get_product(self, product_id: int) -> Dict[str, Any]:
        product = self.repo.get_active_product(product_id)
        if not product:
            raise NotFoundError("Product not found")
        return product_to_dict(product)

    def create_product(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self._require_category(data["category_id"])
        try:
            product = self.repo.add_product(ProductModel(**data))
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Produkt {product.id} '{product.name}' utworzony")
        result = product_to_dict(self.repo.get_active_product(product.id))
        self.hub.publish("product_update", {"action": "created", "product": result})
        return result

    def update_product(self, product_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        product = self.repo.get_active_product(product_id)
        if not product:
            raise NotFoundError("Product not found")

        if changes.get("category_id") is not None:
            self._require_category(changes["category_id"])

        try:
            for field, value in changes.items():
                setattr(product, field, value)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Produkt {product_id} zaktualizowany: {sorted(changes)}")
        # kategoria mogla sie zmienic, relacja do przeladowania
        self.db.expire(product)
        result = product_to_dict(self.repo.get_active_product(product_id))
        self.hub.publish("product_update", {"action": "updated", "product": result})
        return result

    def delete_product(self, product_id: int):
        product = self.repo.get_active_product(product_id)
        if not product:
            raise NotFoundError("Product not found")

        # soft delete, pozycje zamowien dalej wskazuja na produkt
        product.is_active = False
        try:
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Produkt {product_id} dezaktywowany")
        self.hub.publish("product_update", {"action": "deleted", "product_id": product_id})

    # =====================================================
    # CATEGORIES
    # =====================================================
    def list_categories(self) -> List[Dict[str, Any]]:
        return [category_to_dict(c) for c in self.repo.list_categories()]

    def create_category(self, name: str, description: str | None = None) -> Dict[str, Any]:
        if self.repo.get_category_by_name(name):
            raise ConflictError("Category already exists")
        try:
            category = self.repo.add_category(CategoryModel(name=name, description=description))
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise
        return category_to_dict(category)

    def _require_category(self, category_id: int):
        category = self.repo.get_category(category_id)
        if not category or not category.is_active:
            raise NotFoundError("Category not found")
