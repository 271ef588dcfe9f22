# tests/test_payments.py
import json
from decimal import Decimal

import pytest

from storefront.data.models import OrderModel, PaymentModel
from storefront.services.fulfillment_service import DUPLICATE_PAYMENT_REASON, FulfillmentService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import to_minor_units
from storefront.services.payment_service import PaymentService
from storefront.utils.errors import BadRequestError, ForbiddenError, NotFoundError, PaymentGatewayError

from conftest import SHIPPING, auth_headers


@pytest.fixture
def payments(db, gateway, notifier, hub):
    return PaymentService(db, gateway, notification_service=notifier, hub=hub)


@pytest.fixture
def order(db, make, customer, notifier, hub):
    product = make.product(price="40.00", stock=10)
    created = OrderService(db, notification_service=notifier, hub=hub).create_order(
        customer.id, SHIPPING, "credit_card", order_items=[{"product_id": product.id, "quantity": 2}]
    )
    notifier.sent.clear()
    hub.published.clear()
    return created


def paid_order(payments, gateway, order, customer):
    intent = payments.create_payment_intent(order["id"], customer)
    payment_id = intent["payment_id"]
    intent_id = f"pi_test_{len(gateway.intents)}"
    gateway.set_status(intent_id, "succeeded")
    payments.confirm_payment(payment_id, intent_id, customer)
    return payment_id, intent_id


class TestMinorUnits:
    def test_rounds_half_up_to_cents(self):
        assert to_minor_units(Decimal("80.00")) == 8000
        assert to_minor_units(Decimal("10.005")) == 1001
        assert to_minor_units(Decimal("0.01")) == 1


class TestCreateIntent:
    def test_creates_pending_payment(self, db, payments, gateway, order, customer):
        result = payments.create_payment_intent(order["id"], customer)

        assert result["client_secret"] == "pi_test_1_secret"
        db.expire_all()
        payment = db.get(PaymentModel, result["payment_id"])
        assert payment.status == "pending"
        assert payment.transaction_id == "pi_test_1"
        assert payment.amount == Decimal("80.00")
        assert "client_secret" not in payment.gateway_response
        assert gateway.intents["pi_test_1"]["amount"] == 8000
        assert gateway.intents["pi_test_1"]["metadata"]["order_id"] == str(order["id"])

    def test_other_users_order_forbidden(self, make, payments, order):
        stranger = make.user(email="stranger@example.com")

        with pytest.raises(ForbiddenError):
            payments.create_payment_intent(order["id"], stranger)

    def test_missing_order(self, payments, customer):
        with pytest.raises(NotFoundError):
            payments.create_payment_intent(9999, customer)

    def test_gateway_failure_leaves_no_payment_row(self, db, payments, gateway, order, customer):
        gateway.fail = True

        with pytest.raises(PaymentGatewayError):
            payments.create_payment_intent(order["id"], customer)

        assert db.query(PaymentModel).count() == 0

    def test_already_paid_order_rejected(self, payments, gateway, order, customer):
        paid_order(payments, gateway, order, customer)

        with pytest.raises(BadRequestError, match="already paid"):
            payments.create_payment_intent(order["id"], customer)


class TestConfirmPayment:
    def test_unsucceeded_intent_changes_nothing(self, db, payments, order, customer, notifier):
        intent = payments.create_payment_intent(order["id"], customer)

        result = payments.confirm_payment(intent["payment_id"], "pi_test_1", customer)

        assert result == {
            "payment_id": intent["payment_id"],
            "status": "pending",
            "gateway_status": "requires_payment_method",
        }
        db.expire_all()
        assert db.get(PaymentModel, intent["payment_id"]).status == "pending"
        assert db.get(OrderModel, order["id"]).payment_status == "pending"
        assert notifier.sent == []

    def test_succeeded_intent_completes_once(self, db, payments, gateway, order, customer, notifier, hub):
        intent = payments.create_payment_intent(order["id"], customer)
        gateway.set_status("pi_test_1", "succeeded")

        first = payments.confirm_payment(intent["payment_id"], "pi_test_1", customer)
        second = payments.confirm_payment(intent["payment_id"], "pi_test_1", customer)

        assert first["status"] == second["status"] == "completed"
        db.expire_all()
        payment = db.get(PaymentModel, intent["payment_id"])
        assert payment.status == "completed"
        assert payment.processed_at is not None
        stored = db.get(OrderModel, order["id"])
        assert stored.payment_status == "completed"
        assert stored.status == "processing"
        # efekty uboczne tylko raz
        assert notifier.names() == ["send_order_confirmation_task"]
        assert hub.events() == ["order_update"]

    def test_intent_mismatch_rejected(self, payments, order, customer):
        intent = payments.create_payment_intent(order["id"], customer)

        with pytest.raises(BadRequestError):
            payments.confirm_payment(intent["payment_id"], "pi_other", customer)

    def test_foreign_payment_forbidden(self, make, payments, order, customer):
        intent = payments.create_payment_intent(order["id"], customer)
        stranger = make.user(email="stranger@example.com")

        with pytest.raises(ForbiddenError):
            payments.confirm_payment(intent["payment_id"], "pi_test_1", stranger)


class TestRefund:
    def test_refund_within_balance(self, db, payments, gateway, order, customer, notifier):
        paid_order(payments, gateway, order, customer)
        notifier.sent.clear()

        result = payments.process_refund(order["id"], Decimal("30.00"), "damaged")

        assert result["refund_id"] == "re_test_1"
        assert result["amount"] == Decimal("30.00")
        db.expire_all()
        refund_row = db.query(PaymentModel).filter_by(status="refunded").one()
        assert refund_row.amount == Decimal("-30.00")
        assert db.get(OrderModel, order["id"]).status == "refunded"
        assert notifier.sent == [("send_order_status_task", (order["id"], "refunded"))]

    def test_cumulative_refunds_cannot_exceed_payment(self, payments, gateway, order, customer):
        paid_order(payments, gateway, order, customer)
        payments.process_refund(order["id"], Decimal("50.00"))

        with pytest.raises(BadRequestError):
            payments.process_refund(order["id"], Decimal("30.01"))

        payments.process_refund(order["id"], Decimal("30.00"))
        assert len(gateway.refunds) == 2

    def test_refund_without_completed_payment(self, payments, order):
        with pytest.raises(BadRequestError):
            payments.process_refund(order["id"], Decimal("10.00"))


class TestFulfillment:
    def test_webhook_success_is_idempotent(self, db, payments, order, customer, notifier, hub):
        payments.create_payment_intent(order["id"], customer)
        fulfillment = FulfillmentService(db, notification_service=notifier, hub=hub)

        first = fulfillment.complete_order_fulfillment("pi_test_1", {"id": "pi_test_1", "status": "succeeded"})
        second = fulfillment.complete_order_fulfillment("pi_test_1", {"id": "pi_test_1", "status": "succeeded"})

        assert first == {"success": True, "order_id": order["id"]}
        assert second["message"] == "Payment already processed"
        assert notifier.names() == ["send_order_confirmation_task"]
        db.expire_all()
        assert db.get(OrderModel, order["id"]).payment_status == "completed"

    def test_unknown_intent(self, db, notifier, hub):
        result = FulfillmentService(db, notification_service=notifier, hub=hub).complete_order_fulfillment("pi_nope")

        assert result == {"success": False, "message": "Payment not found"}

    def test_failure_marks_payment_and_order(self, db, payments, order, customer, notifier, hub):
        intent = payments.create_payment_intent(order["id"], customer)

        FulfillmentService(db, notification_service=notifier, hub=hub).handle_payment_failure(
            "pi_test_1", "Card declined"
        )

        db.expire_all()
        payment = db.get(PaymentModel, intent["payment_id"])
        assert payment.status == "failed"
        assert payment.failure_reason == "Card declined"
        assert db.get(OrderModel, order["id"]).payment_status == "failed"

    def test_late_failure_does_not_undo_completed_payment(self, db, payments, gateway, order, customer, notifier, hub):
        payment_id, intent_id = paid_order(payments, gateway, order, customer)

        FulfillmentService(db, notification_service=notifier, hub=hub).handle_payment_failure(intent_id, "late")

        db.expire_all()
        assert db.get(PaymentModel, payment_id).status == "completed"
        assert db.get(OrderModel, order["id"]).payment_status == "completed"


    def test_second_webhook_payment_is_flagged_not_applied(self, db, payments, order, customer, notifier, hub):
        payments.create_payment_intent(order["id"], customer)
        second = payments.create_payment_intent(order["id"], customer)
        fulfillment = FulfillmentService(db, notification_service=notifier, hub=hub)

        fulfillment.complete_order_fulfillment("pi_test_1", {"id": "pi_test_1", "status": "succeeded"})
        result = fulfillment.complete_order_fulfillment("pi_test_2", {"id": "pi_test_2", "status": "succeeded"})

        assert result == {"success": False, "message": "Order already paid", "order_id": order["id"]}
        db.expire_all()
        duplicate = db.get(PaymentModel, second["payment_id"])
        assert duplicate.status == "failed"
        assert duplicate.failure_reason == DUPLICATE_PAYMENT_REASON
        assert db.query(PaymentModel).filter_by(order_id=order["id"], status="completed").count() == 1
        assert notifier.names() == ["send_order_confirmation_task"]
        assert hub.events() == ["order_update"]

    def test_second_confirmed_payment_is_flagged_not_applied(self, db, payments, gateway, order, customer, notifier):
        first = payments.create_payment_intent(order["id"], customer)
        second = payments.create_payment_intent(order["id"], customer)
        gateway.set_status("pi_test_1", "succeeded")
        gateway.set_status("pi_test_2", "succeeded")

        payments.confirm_payment(first["payment_id"], "pi_test_1", customer)
        result = payments.confirm_payment(second["payment_id"], "pi_test_2", customer)

        assert result == {"payment_id": second["payment_id"], "status": "failed", "gateway_status": "succeeded"}
        db.expire_all()
        assert db.get(PaymentModel, first["payment_id"]).status == "completed"
        assert db.get(PaymentModel, second["payment_id"]).failure_reason == DUPLICATE_PAYMENT_REASON
        assert db.get(OrderModel, order["id"]).payment_status == "completed"
        assert notifier.names() == ["send_order_confirmation_task"]

class TestPaymentApi:
    def test_confirm_not_succeeded_is_400(self, client, order, customer):
        headers = auth_headers(customer)
        intent = client.post("/api/payments/create-intent", json={"order_id": order["id"]}, headers=headers).json()[
            "data"
        ]

        response = client.post(
            "/api/payments/confirm",
            json={"payment_id": intent["payment_id"], "payment_intent_id": "pi_test_1"},
            headers=headers,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Payment not successful"
        assert body["data"]["gateway_status"] == "requires_payment_method"

    def test_confirm_succeeded(self, client, gateway, order, customer):
        headers = auth_headers(customer)
        intent = client.post("/api/payments/create-intent", json={"order_id": order["id"]}, headers=headers).json()[
            "data"
        ]
        gateway.set_status("pi_test_1", "succeeded")

        response = client.post(
            "/api/payments/confirm",
            json={"payment_id": intent["payment_id"], "payment_intent_id": "pi_test_1"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "completed"

    def test_refund_is_admin_only(self, client, order, customer):
        response = client.post(
            "/api/payments/refund", json={"order_id": order["id"], "amount": "10.00"}, headers=auth_headers(customer)
        )

        assert response.status_code == 403

    def test_payment_methods_are_public(self, client):
        methods = client.get("/api/payments/methods").json()["data"]

        assert {m["id"] for m in methods} >= {"credit_card", "stripe", "cash_on_delivery"}

    def test_webhook_rejects_bad_signature(self, client):
        response = client.post(
            "/webhooks/stripe",
            content=b"{}",
            headers={"Stripe-Signature": "forged", "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_webhook_success_event(self, client, db, order, customer):
        client.post("/api/payments/create-intent", json={"order_id": order["id"]}, headers=auth_headers(customer))
        event = {
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_test_1", "status": "succeeded"}},
        }

        for _ in range(2):
            response = client.post(
                "/webhooks/stripe",
                content=json.dumps(event).encode(),
                headers={"Stripe-Signature": "valid", "Content-Type": "application/json"},
            )
            assert response.status_code == 200
            assert response.json() == {"received": True}

        db.expire_all()
        assert db.get(OrderModel, order["id"]).payment_status == "completed"

    def test_webhook_unknown_event_acknowledged(self, client):
        event = {"type": "charge.refunded", "data": {"object": {"id": "ch_1"}}}

        response = client.post(
            "/webhooks/stripe",
            content=json.dumps(event).encode(),
            headers={"Stripe-Signature": "valid", "Content-Type": "application/json"},
        )

        assert response.status_code == 200
