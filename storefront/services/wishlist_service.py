# storefront/services/wishlist_service.py
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from storefront.data.models.wishlist import WishlistModel
from storefront.repos.product_repo import ProductRepo
from storefront.repos.wishlist_repo import WishlistRepo
from storefront.services.cart_service import CartService
from storefront.utils.errors import ConflictError, NotFoundError
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def wishlist_item_to_dict(item: WishlistModel) -> Dict[str, Any]:
    product = item.product
    return {
        "id": item.id,
        "product_id": item.product_id,
        "added_at": item.added_at,
        "product": {
            "id": product.id,
            "name": product.name,
            "price": product.price,
            "stock": product.stock,
            "images": list(product.images or []),
            "is_active": product.is_active,
        }
        if product
        else None,
    }


class WishlistService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = WishlistRepo(db)
        self.products = ProductRepo(db)
        self.cart_service = CartService(db)

    def list_items(self, user_id: int) -> List[Dict[str, Any]]:
        return [wishlist_item_to_dict(i) for i in self.repo.list_items(user_id)]

    def add(self, user_id: int, product_id: int) -> Dict[str, Any]:
        product = self.products.get_product(product_id)
        if not product or not product.is_active:
            raise NotFoundError("Product not found")

        if self.repo.get_item(user_id, product_id):
            raise ConflictError("Product already in wishlist")

        try:
            item = self.repo.add_item(WishlistModel(user_id=user_id, product_id=product_id))
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Produkt {product_id} dodany do wishlisty usera {user_id}")
        return wishlist_item_to_dict(item)

    def remove(self, user_id: int, product_id: int):
        item = self.repo.get_item(user_id, product_id)
        if not item:
            raise NotFoundError("Product not found in wishlist")

        try:
            self.repo.delete_item(item)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

    def move_to_cart(self, user_id: int, product_id: int) -> Dict[str, Any]:
        """Dodaje 1 szt. do koszyka (te same reguly co koszyk) i usuwa z wishlisty, jedna transakcja."""
        item = self.repo.get_item(user_id, product_id)
        if not item:
            raise NotFoundError("Product not found in wishlist")

        try:
            self.cart_service.add_in_transaction(user_id, product_id, 1)
            self.repo.delete_item(item)
            self.repo.commit()
        except Exception as e:
            logger.error(f"Przeniesienie produktu {product_id} do koszyka nieudane: {e}")
            self.repo.rollback()
            raise

        logger.info(f"Produkt {product_id} przeniesiony z wishlisty do koszyka usera {user_id}")
        return self.cart_service.get_cart(user_id)
