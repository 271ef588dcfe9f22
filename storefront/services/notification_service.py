# storefront/services/notification_service.py
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.repos.user_repo import UserRepo
from storefront.services import email_templates
from storefront.services.mailer import Mailer
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysylania powiadomien.
    Uzywa Celery do asynchronicznego przetwarzania; zlecenie taska to efekt
    uboczny po commicie, wiec blad brokera jest logowany i nie wychodzi dalej.
    """

    def _dispatch(self, task, *args) -> bool:
        try:
            task.delay(*args)
            return True
        except Exception as e:
            logger.warning(f"Nie udalo sie zlecic taska {task.name}{args}: {e}")
            return False

    def send_welcome(self, user_id: int) -> bool:
        return self._dispatch(send_welcome_task, user_id)

    def send_order_confirmation(self, order_id: int) -> bool:
        return self._dispatch(send_order_confirmation_task, order_id)

    def send_order_status(self, order_id: int, status: str) -> bool:
        return self._dispatch(send_order_status_task, order_id, status)

    def send_shipping(self, order_id: int) -> bool:
        return self._dispatch(send_shipping_task, order_id)

    def send_low_stock_alert(self, product_ids: List[int]) -> bool:
        return self._dispatch(send_low_stock_alert_task, product_ids)

    def send_abandoned_cart(self, user_id: int) -> bool:
        return self._dispatch(send_abandoned_cart_task, user_id)

    def send_promotional(self, user_ids: List[int], subject: str, content: str) -> bool:
        return self._dispatch(send_promotional_task, user_ids, subject, content)


# =====================================================
# CELERY TASKS
# kazdy task sam laduje dane z bazy, do kolejki trafiaja tylko id
# =====================================================
def _order_payload(order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "total_amount": order.total_amount,
        "items": [
            {
                "name": i.product.name if i.product else f"Product {i.product_id}",
                "quantity": i.quantity,
                "line_total": i.price * i.quantity,
            }
            for i in order.items
        ],
    }


def _shipping_address(order) -> str:
    return (
        f"{order.shipping_address_street}, {order.shipping_address_city}, "
        f"{order.shipping_address_state} {order.shipping_address_zip_code}, {order.shipping_address_country}"
    )


def _with_session(fn, *args):
    db: Session = SessionLocal()
    try:
        return fn(db, *args)
    finally:
        db.close()


def deliver_welcome(db: Session, user_id: int, mailer: Mailer | None = None) -> Dict[str, Any]:
    user = UserRepo(db).get_user(user_id)
    if not user:
        logger.warning(f"[NOTIFICATION] welcome: user {user_id} nie istnieje")
        return {"user_id": user_id, "status": "skipped"}
    (mailer or Mailer()).send(user.email, *email_templates.welcome(user.name))
    return {"user_id": user_id, "status": "sent"}


def deliver_order_confirmation(db: Session, order_id: int, mailer: Mailer | None = None) -> Dict[str, Any]:
    order = OrderRepo(db).get_order(order_id)
    if not order:
        logger.warning(f"[NOTIFICATION] confirmation: order {order_id} nie istnieje")
        return {"order_id": order_id, "status": "skipped"}
    (mailer or Mailer()).send(
        order.user.email, *email_templates.order_confirmation(order.user.name, _order_payload(order))
    )
    return {"order_id": order_id, "status": "sent"}


def deliver_order_status(db: Session, order_id: int, status: str, mailer: Mailer | None = None) -> Dict[str, Any]:
    order = OrderRepo(db).get_order(order_id)
    if not order:
        return {"order_id": order_id, "status": "skipped"}
    (mailer or Mailer()).send(order.user.email, *email_templates.order_status(order.user.name, order.id, status))
    return {"order_id": order_id, "status": "sent"}


def deliver_shipping(db: Session, order_id: int, mailer: Mailer | None = None) -> Dict[str, Any]:
    order = OrderRepo(db).get_order(order_id)
    if not order:
        return {"order_id": order_id, "status": "skipped"}
    (mailer or Mailer()).send(
        order.user.email, *email_templates.shipping(order.user.name, order.id, _shipping_address(order))
    )
    return {"order_id": order_id, "status": "sent"}


def deliver_low_stock_alert(db: Session, product_ids: List[int], mailer: Mailer | None = None) -> Dict[str, Any]:
    repo = ProductRepo(db)
    products = [p for p in (repo.get_product(pid) for pid in product_ids) if p is not None]
    if not products:
        return {"sent": 0}

    rendered = email_templates.low_stock([{"id": p.id, "name": p.name, "stock": p.stock} for p in products])
    mailer = mailer or Mailer()
    sent = 0
    for admin in UserRepo(db).active_admins():
        try:
            mailer.send(admin.email, *rendered)
            sent += 1
        except Exception as e:
            # jeden admin z blednym adresem nie blokuje reszty
            logger.warning(f"[NOTIFICATION] low stock do {admin.email} nieudany: {e}")
    return {"sent": sent}


def deliver_abandoned_cart(db: Session, user_id: int, mailer: Mailer | None = None) -> Dict[str, Any]:
    user = UserRepo(db).get_user(user_id)
    repo = CartRepo(db)
    cart = repo.get_cart_by_user(user_id)
    if not user or not cart:
        return {"user_id": user_id, "status": "skipped"}

    items = [
        {"name": i.product.name if i.product else f"Product {i.product_id}", "quantity": i.quantity}
        for i in repo.get_cart_items(cart.id)
    ]
    if not items:
        return {"user_id": user_id, "status": "skipped"}

    (mailer or Mailer()).send(user.email, *email_templates.abandoned_cart(user.name, items, cart.total_amount))
    return {"user_id": user_id, "status": "sent"}


def deliver_promotional(
    db: Session, user_ids: List[int], subject: str, content: str, mailer: Mailer | None = None
) -> Dict[str, Any]:
    repo = UserRepo(db)
    mailer = mailer or Mailer()
    sent = 0
    for user_id in user_ids:
        user = repo.get_user(user_id)
        if not user or not user.is_active:
            continue
        try:
            mailer.send(user.email, *email_templates.promotional(user.name, subject, content))
            sent += 1
        except Exception as e:
            logger.warning(f"[NOTIFICATION] promo do usera {user_id} nieudane: {e}")
    return {"sent": sent, "requested": len(user_ids)}


@celery_app.task(name="storefront.services.notification_service.send_welcome_task")
def send_welcome_task(user_id: int):
    logger.info(f"[NOTIFICATION] welcome dla usera {user_id}")
    return _with_session(deliver_welcome, user_id)


@celery_app.task(name="storefront.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(order_id: int):
    logger.info(f"[NOTIFICATION] potwierdzenie zamowienia {order_id}")
    return _with_session(deliver_order_confirmation, order_id)


@celery_app.task(name="storefront.services.notification_service.send_order_status_task")
def send_order_status_task(order_id: int, status: str):
    logger.info(f"[NOTIFICATION] zamowienie {order_id} -> {status}")
    return _with_session(deliver_order_status, order_id, status)


@celery_app.task(name="storefront.services.notification_service.send_shipping_task")
def send_shipping_task(order_id: int):
    logger.info(f"[NOTIFICATION] wysylka zamowienia {order_id}")
    return _with_session(deliver_shipping, order_id)


@celery_app.task(name="storefront.services.notification_service.send_low_stock_alert_task")
def send_low_stock_alert_task(product_ids: List[int]):
    logger.info(f"[NOTIFICATION] low stock dla produktow {product_ids}")
    return _with_session(deliver_low_stock_alert, product_ids)


@celery_app.task(name="storefront.services.notification_service.send_abandoned_cart_task")
def send_abandoned_cart_task(user_id: int):
    logger.info(f"[NOTIFICATION] porzucony koszyk usera {user_id}")
    return _with_session(deliver_abandoned_cart, user_id)


@celery_app.task(name="storefront.services.notification_service.send_promotional_task")
def send_promotional_task(user_ids: List[int], subject: str, content: str):
    logger.info(f"[NOTIFICATION] promocja '{subject}' do {len(user_ids)} userow")
    return _with_session(deliver_promotional, user_ids, subject, content)
