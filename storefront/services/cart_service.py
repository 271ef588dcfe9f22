# storefront/services/cart_service.py
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import Dict, Any, List

from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.product import ProductModel
from storefront.data.models.wishlist import WishlistModel
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.repos.wishlist_repo import WishlistRepo
from storefront.utils.errors import BadRequestError, NotFoundError, InsufficientStockError
from storefront.utils.settings import CART_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def item_to_dict(item: CartItemModel) -> Dict[str, Any]:
    product = item.product
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product_name": product.name if product else None,
        "quantity": item.quantity,
        "price": item.price,
        "subtotal": item.price * item.quantity,
        "in_stock": bool(product and product.is_active and product.stock >= item.quantity),
        "added_at": item.added_at,
    }


class CartService:
    """
    Use case'y koszyka.
    commands (add, update, remove, clear, move) modyfikuja stan i przeliczaja
    total_amount / item_count z aktualnych pozycji w tej samej transakcji,
    query (get) tylko odczyt.
    Stock NIE jest rezerwowany przy dodaniu, tylko sprawdzany.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.wishlist = WishlistRepo(db)

    # query - odczyt
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id)

        if not cart:
            return {
                "id": None,
                "items": [],
                "total_amount": Decimal("0.00"),
                "item_count": 0,
                "expires_at": None,
            }

        items = self.repo.get_cart_items(cart.id)
        return self._to_dict(cart, items)

    # commands
    def add_item(self, user_id: int, product_id: int, quantity: int = 1) -> Dict[str, Any]:
        if quantity <= 0:
            raise BadRequestError("Quantity must be greater than 0")

        try:
            cart = self._get_or_create(user_id)
            self._add_to_cart(cart, product_id, quantity)
            items = self._recalculate(cart)
            self.repo.commit()
        except Exception as e:
            logger.error(f"Blad podczas dodawania produktu {product_id} do koszyka usera {user_id}: {e}")
            self.repo.rollback()
            raise

        logger.info(f"Produkt {product_id} (x{quantity}) dodany do koszyka {cart.id}")
        return self._to_dict(cart, items)

    def update_item(self, user_id: int, item_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 0:
            raise BadRequestError("Quantity cannot be negative")

        try:
            cart = self._require_cart(user_id)
            item = self._require_item(cart, item_id)

            if quantity == 0:
                # ilosc 0 = usuniecie pozycji
                self.repo.delete_cart_item(item)
            else:
                product = item.product
                if product is None or not product.is_active:
                    raise NotFoundError("Product not found")
                if product.stock < quantity:
                    raise InsufficientStockError(product.name, product.stock, quantity)
                item.quantity = quantity
                item.price = product.price

            items = self._recalculate(cart)
            self.repo.commit()
        except Exception as e:
            logger.error(f"Blad podczas zmiany ilosci pozycji {item_id}: {e}")
            self.repo.rollback()
            raise

        logger.info(f"Pozycja {item_id} w koszyku {cart.id} ustawiona na {quantity}")
        return self._to_dict(cart, items)

    def remove_item(self, user_id: int, item_id: int) -> Dict[str, Any]:
        try:
            cart = self._require_cart(user_id)
            item = self._require_item(cart, item_id)
            self.repo.delete_cart_item(item)
            items = self._recalculate(cart)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Pozycja {item_id} usunieta z koszyka {cart.id}")
        return self._to_dict(cart, items)

    def clear(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id, lock=True)
        if not cart:
            return self.get_cart(user_id)

        try:
            self.repo.delete_all_items(cart.id)
            self.db.expire(cart, ["items"])
            items = self._recalculate(cart)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Koszyk {cart.id} wyczyszczony")
        return self._to_dict(cart, items)

    def move_to_wishlist(self, user_id: int, item_id: int) -> Dict[str, Any]:
        """Dodaje produkt do wishlisty (jesli go tam nie ma) i usuwa pozycje z koszyka, atomowo."""
        try:
            cart = self._require_cart(user_id)
            item = self._require_item(cart, item_id)

            if not self.wishlist.get_item(user_id, item.product_id):
                self.wishlist.add_item(WishlistModel(user_id=user_id, product_id=item.product_id))

            self.repo.delete_cart_item(item)
            items = self._recalculate(cart)
            self.repo.commit()
        except Exception as e:
            logger.error(f"Blad przenoszenia pozycji {item_id} do wishlisty: {e}")
            self.repo.rollback()
            raise

        logger.info(f"Pozycja {item_id} przeniesiona z koszyka {cart.id} do wishlisty")
        return self._to_dict(cart, items)

    # ---- uzywane tez przez WishlistService.move_to_cart, bez commita ----
    def add_in_transaction(self, user_id: int, product_id: int, quantity: int) -> CartModel:
        cart = self._get_or_create(user_id)
        self._add_to_cart(cart, product_id, quantity)
        self._recalculate(cart)
        return cart

    # ---- helpers ----
    def _get_or_create(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id, lock=True)
        if cart:
            return cart

        logger.info(f"Tworze nowy koszyk dla uzytkownika {user_id}")
        return self.repo.create_cart(
            CartModel(
                user_id=user_id,
                total_amount=Decimal("0.00"),
                item_count=0,
                expires_at=self._new_expiry(),
            )
        )

    def _require_cart(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id, lock=True)
        if not cart:
            raise NotFoundError("Cart not found")
        return cart

    def _require_item(self, cart: CartModel, item_id: int) -> CartItemModel:
        item = self.repo.get_cart_item_by_id(cart.id, item_id)
        if not item:
            raise NotFoundError("Cart item not found")
        return item

    def _add_to_cart(self, cart: CartModel, product_id: int, quantity: int):
        product: ProductModel | None = self.products.get_product(product_id)
        if product is None or not product.is_active:
            raise NotFoundError("Product not found")

        if product.stock < quantity:
            raise InsufficientStockError(product.name, product.stock, quantity)

        existing = self.repo.get_cart_item(cart.id, product_id)
        if existing:
            # laczona ilosc tez musi zmiescic sie w aktualnym stanie magazynu
            new_quantity = existing.quantity + quantity
            if product.stock < new_quantity:
                raise InsufficientStockError(product.name, product.stock, new_quantity)
            existing.quantity = new_quantity
            existing.price = product.price
            self.db.flush()
        else:
            self.repo.add_cart_item(
                CartItemModel(
                    cart_id=cart.id,
                    product_id=product_id,
                    quantity=quantity,
                    price=product.price,
                )
            )

    def _recalculate(self, cart: CartModel) -> List[CartItemModel]:
        # total i item_count zawsze z pozycji w bazie, nigdy przyrostowo
        items = self.repo.get_cart_items(cart.id)
        cart.total_amount = sum((i.price * i.quantity for i in items), Decimal("0.00"))
        cart.item_count = len(items)
        # kazda zmiana przedluza waznosc koszyka
        cart.expires_at = self._new_expiry()
        cart.updated_at = datetime.now(timezone.utc)
        self.db.flush()
        return items

    @staticmethod
    def _new_expiry() -> datetime:
        return datetime.now(timezone.utc) + timedelta(seconds=CART_TTL_SECONDS)

    @staticmethod
    def _to_dict(cart: CartModel, items: List[CartItemModel]) -> Dict[str, Any]:
        return {
            "id": cart.id,
            "items": [item_to_dict(i) for i in items],
            "total_amount": cart.total_amount,
            "item_count": cart.item_count,
            "expires_at": cart.expires_at,
        }
