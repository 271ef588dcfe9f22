# storefront/services/payment_service.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from storefront.data.models.payment import PaymentModel
from storefront.data.models.user import UserModel
from storefront.repos.order_repo import OrderRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.services.fulfillment_service import mark_payment_completed
from storefront.services.live_hub import LiveHub, live_hub
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import PaymentGateway
from storefront.utils.errors import BadRequestError, ForbiddenError, NotFoundError
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PAYMENT_METHODS = [
    {"id": "credit_card", "name": "Credit Card", "type": "card", "supported": True},
    {"id": "debit_card", "name": "Debit Card", "type": "card", "supported": True},
    {"id": "paypal", "name": "PayPal", "type": "wallet", "supported": False},
    {"id": "stripe", "name": "Stripe", "type": "gateway", "supported": True},
    {"id": "cash_on_delivery", "name": "Cash on Delivery", "type": "cod", "supported": True},
]


class PaymentService:
    """
    Platnosci przez bramke.
    Wiersz Payment jest commitowany dopiero po udanym wywolaniu bramki,
    blad bramki = rollback calej transakcji.
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        notification_service: NotificationService | None = None,
        hub: LiveHub | None = None,
    ):
        self.repo = PaymentRepo(db)
        self.orders = OrderRepo(db)
        self.gateway = gateway
        self.notification_service = notification_service or NotificationService()
        self.hub = hub or live_hub

    def create_payment_intent(self, order_id: int, user: UserModel, payment_method: str = "stripe") -> Dict[str, Any]:
        order = self.orders.get_order(order_id)

        if not order:
            raise NotFoundError("Order not found")

        if order.user_id != user.id:
            raise ForbiddenError("Not authorized to pay for this order")

        if order.payment_status == "completed":
            raise BadRequestError("Order already paid")

        try:
            intent = self.gateway.create_intent(
                order.total_amount,
                metadata={"order_id": order.id, "user_id": user.id},
            )
            payment = self.repo.add_payment(
                PaymentModel(
                    order_id=order.id,
                    payment_method=payment_method,
                    transaction_id=intent["id"],
                    amount=order.total_amount,
                    currency=self.gateway.currency,
                    status="pending",
                    gateway_response={k: v for k, v in intent.items() if k != "client_secret"},
                )
            )
            self.repo.commit()
        except Exception as e:
            logger.error(f"Payment intent dla zamowienia {order_id} nieudany: {e}")
            self.repo.rollback()
            raise

        logger.info(f"Payment {payment.id} ({intent['id']}) utworzony dla zamowienia {order_id}")
        return {"client_secret": intent["client_secret"], "payment_id": payment.id}

    def confirm_payment(self, payment_id: int, intent_id: str, user: UserModel) -> Dict[str, Any]:
        """
        Potwierdzenie po stronie klienta. Tylko status 'succeeded' z bramki
        zamyka platnosc; ponowne potwierdzenie juz oplaconej nic nie zmienia.
        """
        try:
            payment = self.repo.get_payment(payment_id, lock=True)

            if not payment:
                raise NotFoundError("Payment not found")

            if payment.order.user_id != user.id:
                raise ForbiddenError("Not authorized to confirm this payment")

            if payment.transaction_id != intent_id:
                raise BadRequestError("Payment intent does not match this payment")

            if payment.status == "completed":
                self.repo.rollback()
                logger.info(f"Payment {payment_id} already completed, nic do zrobienia")
                return {"payment_id": payment_id, "status": "completed", "gateway_status": "succeeded"}

            intent = self.gateway.retrieve_intent(intent_id)

            if intent["status"] != "succeeded":
                current = payment.status
                self.repo.rollback()
                logger.info(f"Payment {payment_id}: bramka zwrocila {intent['status']}, bez zmian")
                return {"payment_id": payment_id, "status": current, "gateway_status": intent["status"]}

            order = self.orders.lock_order(payment.order_id)
            finalized = mark_payment_completed(payment, order, intent)
            order_id = payment.order_id
            self.repo.commit()
        except Exception as e:
            logger.error(f"Potwierdzenie platnosci {payment_id} nieudane: {e}")
            self.repo.rollback()
            raise

        if not finalized:
            return {"payment_id": payment_id, "status": payment.status, "gateway_status": intent["status"]}

        logger.info(f"Payment {payment_id} completed, order {order_id} -> processing")

        self.notification_service.send_order_confirmation(order_id)
        self.hub.publish(
            "order_update",
            {"action": "paid", "order_id": order_id, "payment_status": "completed", "status": "processing"},
        )
        return {"payment_id": payment_id, "status": "completed", "gateway_status": "succeeded"}

    def process_refund(self, order_id: int, amount: Decimal, reason: str | None = None) -> Dict[str, Any]:
        order = self.orders.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")

        try:
            completed = self.repo.get_completed_payment(order_id)
            if not completed:
                raise BadRequestError("No completed payment found for this order")

            # lock na platnosci serializuje rownolegle zwroty tego samego zamowienia
            payment = self.repo.get_payment(completed.id, lock=True)

            refundable = payment.amount - self.repo.refunded_total(order_id)
            if amount <= 0 or amount > refundable:
                raise BadRequestError(f"Refund amount must be between 0.01 and {refundable}")

            refund = self.gateway.refund(payment.transaction_id, amount, reason)

            self.repo.add_payment(
                PaymentModel(
                    order_id=order_id,
                    payment_method=payment.payment_method,
                    transaction_id=refund["id"],
                    amount=-amount,
                    currency=payment.currency,
                    status="refunded",
                    gateway_response=refund,
                    processed_at=datetime.now(timezone.utc),
                )
            )
            order.status = "refunded"
            self.repo.commit()
        except Exception as e:
            logger.error(f"Zwrot dla zamowienia {order_id} nieudany: {e}")
            self.repo.rollback()
            raise

        logger.info(f"Zwrot {refund['id']} na {amount} dla zamowienia {order_id}")
        self.notification_service.send_order_status(order_id, "refunded")
        return {"refund_id": refund["id"], "amount": amount, "status": refund["status"]}

    @staticmethod
    def list_payment_methods() -> List[Dict[str, Any]]:
        return [dict(m) for m in PAYMENT_METHODS]
