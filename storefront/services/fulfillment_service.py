# storefront/services/fulfillment_service.py
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.payment import PaymentModel
from storefront.repos.order_repo import OrderRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.services.live_hub import LiveHub, live_hub
from storefront.services.notification_service import NotificationService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


DUPLICATE_PAYMENT_REASON = "Duplicate payment: order already paid, refund required"


def mark_payment_completed(
    payment: PaymentModel, order: OrderModel, gateway_response: Dict[str, Any] | None = None
) -> bool:
    """
    Payment -> completed, zamowienie -> oplacone i w realizacji. Bez commita.
    Zamowienie musi byc zablokowane przez wolajacego (OrderRepo.lock_order).

    Jesli zamowienie oplacila juz inna platnosc, ta nie zamyka go drugi raz:
    zostaje oznaczona jako failed z DUPLICATE_PAYMENT_REASON do recznego zwrotu.
    Zwraca True tylko gdy platnosc sfinalizowala zamowienie.
    """
    payment.processed_at = datetime.now(timezone.utc)
    if gateway_response is not None:
        payment.gateway_response = {k: v for k, v in gateway_response.items() if k != "client_secret"}

    if order.payment_status == "completed":
        payment.status = "failed"
        payment.failure_reason = DUPLICATE_PAYMENT_REASON
        logger.warning(
            f"Payment {payment.id} ({payment.transaction_id}, {payment.amount}) przyszedl dla juz oplaconego "
            f"zamowienia {order.id}, wymaga zwrotu"
        )
        return False

    payment.status = "completed"
    order.payment_status = "completed"
    order.status = "processing"
    return True


class FulfillmentService:
    """
    Obsluga asynchronicznych wynikow platnosci (webhook).
    Idempotentna po transaction_id: ponowne dostarczenie tego samego eventu
    nic nie zmienia.
    """

    def __init__(
        self,
        db: Session,
        notification_service: NotificationService | None = None,
        hub: LiveHub | None = None,
    ):
        self.repo = PaymentRepo(db)
        self.orders = OrderRepo(db)
        self.notification_service = notification_service or NotificationService()
        self.hub = hub or live_hub

    def complete_order_fulfillment(self, intent_id: str, gateway_response: Dict[str, Any] | None = None) -> Dict[str, Any]:
        try:
            payment = self.repo.get_by_transaction_id(intent_id, lock=True)

            if not payment:
                logger.error(f"Payment not found for transaction: {intent_id}")
                self.repo.rollback()
                return {"success": False, "message": "Payment not found"}

            if payment.status == "completed":
                order_id = payment.order_id
                logger.info(f"Payment {payment.id} ({intent_id}) already processed")
                self.repo.rollback()
                return {"success": True, "message": "Payment already processed", "order_id": order_id}

            order = self.orders.lock_order(payment.order_id)
            finalized = mark_payment_completed(payment, order, gateway_response)
            self.repo.commit()
        except Exception as e:
            logger.error(f"Fulfillment error dla {intent_id}: {e}")
            self.repo.rollback()
            raise

        if not finalized:
            return {"success": False, "message": "Order already paid", "order_id": payment.order_id}

        logger.info(f"Order {payment.order_id} oplacone (payment {payment.id})")

        self.notification_service.send_order_confirmation(payment.order_id)
        self.hub.publish(
            "order_update",
            {"action": "paid", "order_id": payment.order_id, "payment_status": "completed", "status": "processing"},
        )
        return {"success": True, "order_id": payment.order_id}

    def handle_payment_failure(self, intent_id: str, reason: str | None) -> Dict[str, Any]:
        try:
            payment = self.repo.get_by_transaction_id(intent_id, lock=True)

            if not payment:
                logger.warning(f"Payment failure for unknown transaction: {intent_id}")
                self.repo.rollback()
                return {"success": False, "message": "Payment not found"}

            if payment.status == "completed":
                # spozniony event failed nie cofa oplaconego zamowienia
                logger.warning(f"Ignoring failure event for completed payment {payment.id}")
                self.repo.rollback()
                return {"success": True, "message": "Payment already completed"}

            payment.status = "failed"
            payment.failure_reason = reason or "Payment failed"
            if payment.order.payment_status != "completed":
                payment.order.payment_status = "failed"
            self.repo.commit()
        except Exception as e:
            logger.error(f"Error handling payment failure dla {intent_id}: {e}")
            self.repo.rollback()
            raise

        logger.info(f"Payment {payment.id} failed: {payment.failure_reason}")
        return {"success": True, "order_id": payment.order_id}
