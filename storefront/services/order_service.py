# storefront/services/order_service.py
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel, ORDER_STATUSES
from storefront.data.models.order_item import OrderItemModel
from storefront.data.models.user import UserModel
from storefront.domain.schemas import paginate
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.live_hub import LiveHub, live_hub
from storefront.services.notification_service import NotificationService
from storefront.utils.errors import (
    BadRequestError,
    ForbiddenError,
    InsufficientStockError,
    NotFoundError,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def order_to_dict(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "total_amount": order.total_amount,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "shipping_address": {
            "street": order.shipping_address_street,
            "city": order.shipping_address_city,
            "state": order.shipping_address_state,
            "zip_code": order.shipping_address_zip_code,
            "country": order.shipping_address_country,
        },
        "order_notes": order.order_notes,
        "items": [
            {
                "id": i.id,
                "product_id": i.product_id,
                "product_name": i.product.name if i.product else None,
                "quantity": i.quantity,
                "price": i.price,
            }
            for i in order.items
        ],
        "created_at": order.created_at,
    }


class OrderService:
    """
    Serwis odpowiedzialny za domene zamowien.
    Jedyne miejsce gdzie zmniejszany jest stock: wiersze produktow sa blokowane
    (SELECT ... FOR UPDATE) przed odczytem stanu, wiec rownolegle zamowienia
    na ostatnie sztuki sa serializowane i stock nigdy nie spada ponizej zera.
    """

    def __init__(
        self,
        db: Session,
        notification_service: NotificationService | None = None,
        hub: LiveHub | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.products = ProductRepo(db)
        self.carts = CartRepo(db)
        self.notification_service = notification_service or NotificationService()
        self.hub = hub or live_hub

    def create_order(
        self,
        user_id: int,
        shipping_address: Dict[str, str],
        payment_method: str,
        order_items: List[Dict[str, int]] | None = None,
        order_notes: str | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: zlozenie zamowienia.

        1. Bez order_items zamowienie powstaje z koszyka usera
        2. Blokuje produkty (w kolejnosci id) i sprawdza stock
        3. Zamraza ceny w OrderItem, zmniejsza stock
        4. Koszyk (jesli byl zrodlem) czyszczony w tej samej transakcji
        5. Po commicie powiadomienie + event live (best-effort)
        """
        try:
            cart = None
            if order_items is None:
                cart = self.carts.get_cart_by_user(user_id, lock=True)
                cart_items = self.carts.get_cart_items(cart.id) if cart else []
                if not cart_items:
                    raise BadRequestError("Cart is empty")
                order_items = [{"product_id": i.product_id, "quantity": i.quantity} for i in cart_items]

            requested = self._merge_items(order_items)
            locked = self.products.lock_products(list(requested))

            total = Decimal("0.00")
            lines: List[OrderItemModel] = []
            for product_id, quantity in requested.items():
                product = locked.get(product_id)
                if product is None or not product.is_active:
                    raise NotFoundError(f"Product {product_id} not found")
                if product.stock < quantity:
                    raise InsufficientStockError(product.name, product.stock, quantity)

                total += product.price * quantity
                lines.append(OrderItemModel(product=product, quantity=quantity, price=product.price))
                product.stock -= quantity

            order = self.repo.create_order(
                OrderModel(
                    user_id=user_id,
                    total_amount=total,
                    status="pending",
                    payment_status="pending",
                    payment_method=payment_method,
                    shipping_address_street=shipping_address["street"],
                    shipping_address_city=shipping_address["city"],
                    shipping_address_state=shipping_address["state"],
                    shipping_address_zip_code=shipping_address["zip_code"],
                    shipping_address_country=shipping_address["country"],
                    order_notes=order_notes,
                    items=lines,
                )
            )

            if cart is not None:
                self.carts.delete_all_items(cart.id)
                self.db.expire(cart, ["items"])
                cart.total_amount = Decimal("0.00")
                cart.item_count = 0

            self.repo.commit()
        except Exception as e:
            logger.error(f"Tworzenie zamowienia dla usera {user_id} nieudane: {e}")
            self.repo.rollback()
            raise

        logger.info(f"Order {order.id} created for user {user_id}, total {total}")

        result = order_to_dict(order)
        # efekty uboczne po commicie, ich blad nie cofa zamowienia
        self.notification_service.send_order_confirmation(order.id)
        self.hub.publish("order_update", {"action": "created", "order": result})
        return result

    def update_order_status(self, order_id: int, status: str) -> Dict[str, Any]:
        if status not in ORDER_STATUSES:
            raise BadRequestError(f"Invalid order status: {status}")

        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")

        previous = order.status
        order.status = status
        try:
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Order {order_id}: {previous} -> {status}")

        self.notification_service.send_order_status(order_id, status)
        if status == "shipped":
            self.notification_service.send_shipping(order_id)

        result = order_to_dict(order)
        self.hub.publish("order_update", {"action": "status_changed", "order": result})
        return result

    def list_my_orders(self, user_id: int) -> List[Dict[str, Any]]:
        return [order_to_dict(o) for o in self.repo.list_user_orders(user_id)]

    def list_orders(self, status: str | None, page: int, limit: int) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        if status and status not in ORDER_STATUSES:
            raise BadRequestError(f"Invalid order status: {status}")
        orders, total = self.repo.list_orders(status, limit, (page - 1) * limit)
        return [order_to_dict(o) for o in orders], paginate(page, limit, total)

    def get_order(self, order_id: int, user: UserModel) -> Dict[str, Any]:
        """
        Use Case: pobranie zamowienia (Query).
        Nie-wlasciciel dostaje 403, admin widzi wszystko.
        """
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFoundError("Order not found")

        if order.user_id != user.id and not user.is_admin:
            raise ForbiddenError("Not authorized to access this order")

        return order_to_dict(order)

    @staticmethod
    def _merge_items(order_items: List[Dict[str, int]]) -> Dict[int, int]:
        merged: Dict[int, int] = {}
        for item in order_items:
            quantity = int(item["quantity"])
            if quantity <= 0:
                raise BadRequestError("Quantity must be greater than 0")
            merged[item["product_id"]] = merged.get(item["product_id"], 0) + quantity
        if not merged:
            raise BadRequestError("Order must contain at least one item")
        return merged
