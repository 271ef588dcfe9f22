# tests/test_payment_gateway.py
import hashlib
import hmac
import json
import time
from decimal import Decimal

import pytest
import stripe

from storefront.data.models import OrderModel, PaymentModel
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import PaymentGateway
from storefront.utils.errors import BadRequestError, PaymentGatewayError

from conftest import SHIPPING

SECRET = "whsec_test"


def signed(payload: bytes, secret: str = SECRET) -> str:
    timestamp = int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload.decode()}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def gateway():
    return PaymentGateway(api_key="sk_test_dummy", webhook_secret=SECRET, currency="usd", timeout=5)


class TestPaymentGateway:
    def test_create_intent_sends_minor_units(self, gateway, monkeypatch):
        calls = []

        def fake_create(**kwargs):
            calls.append(kwargs)
            return stripe.PaymentIntent.construct_from(
                {"id": "pi_1", "object": "payment_intent", "status": "requires_payment_method",
                 "client_secret": "pi_1_secret", "amount": kwargs["amount"], "currency": kwargs["currency"],
                 "metadata": kwargs["metadata"]},
                "sk_test_dummy",
            )

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)

        intent = gateway.create_intent(Decimal("19.99"), {"order_id": 7})

        assert calls[0]["amount"] == 1999
        assert calls[0]["metadata"] == {"order_id": "7"}
        assert intent["client_secret"] == "pi_1_secret"
        assert intent["metadata"] == {"order_id": "7"}
        assert type(intent["metadata"]) is dict

    def test_retrieved_intent_is_plain_data(self, gateway, monkeypatch):
        def fake_retrieve(intent_id):
            return stripe.PaymentIntent.construct_from(
                {"id": intent_id, "object": "payment_intent", "status": "succeeded", "amount": 8000,
                 "currency": "usd", "metadata": {"order_id": "3"},
                 "last_payment_error": {"message": "first attempt declined"}},
                "sk_test_dummy",
            )

        monkeypatch.setattr(stripe.PaymentIntent, "retrieve", fake_retrieve)

        intent = gateway.retrieve_intent("pi_2")

        assert intent == {"id": "pi_2", "status": "succeeded", "client_secret": None, "amount": 8000,
                          "currency": "usd", "metadata": {"order_id": "3"}}

    def test_refund_returns_plain_dict(self, gateway, monkeypatch):
        calls = []

        def fake_refund(**kwargs):
            calls.append(kwargs)
            return stripe.Refund.construct_from(
                {"id": "re_1", "object": "refund", "status": "succeeded", "amount": kwargs["amount"]},
                "sk_test_dummy",
            )

        monkeypatch.setattr(stripe.Refund, "create", fake_refund)

        refund = gateway.refund("pi_1", Decimal("12.50"), reason="damaged")

        assert refund == {"id": "re_1", "status": "succeeded", "amount": 1250}
        assert calls[0]["metadata"] == {"reason": "damaged"}

    def test_connection_errors_are_retried_then_mapped(self, gateway, monkeypatch):
        attempts = []

        def failing_create(**kwargs):
            attempts.append(1)
            raise stripe.APIConnectionError("network down")

        monkeypatch.setattr(stripe.PaymentIntent, "create", failing_create)

        with pytest.raises(PaymentGatewayError):
            gateway.create_intent(Decimal("5.00"), {"order_id": 1})
        assert len(attempts) == 3

    def test_card_errors_are_not_retried(self, gateway, monkeypatch):
        attempts = []

        def declined(**kwargs):
            attempts.append(1)
            raise stripe.CardError("declined", param=None, code="card_declined")

        monkeypatch.setattr(stripe.Refund, "create", declined)

        with pytest.raises(PaymentGatewayError):
            gateway.refund("pi_1", Decimal("1.00"))
        assert len(attempts) == 1

    def test_unknown_intent_is_bad_request(self, gateway, monkeypatch):
        def missing(intent_id):
            raise stripe.InvalidRequestError("No such payment_intent", param="id")

        monkeypatch.setattr(stripe.PaymentIntent, "retrieve", missing)

        with pytest.raises(BadRequestError):
            gateway.retrieve_intent("pi_missing")

    def test_construct_event_verifies_signature(self, gateway):
        payload = json.dumps({"id": "evt_1", "object": "event", "type": "payment_intent.succeeded",
                              "data": {"object": {"id": "pi_1"}}}).encode()

        event = gateway.construct_event(payload, signed(payload))

        assert event["type"] == "payment_intent.succeeded"
        assert event["data"]["object"]["id"] == "pi_1"
        assert type(event) is dict
        assert type(event["data"]["object"]) is dict
        assert event["data"]["object"].get("last_payment_error") is None

    def test_construct_event_rejects_forged_signature(self, gateway):
        payload = b'{"id": "evt_1", "object": "event"}'

        with pytest.raises(BadRequestError, match="Invalid signature"):
            gateway.construct_event(payload, signed(payload, secret="whsec_other"))

    def test_construct_event_requires_header(self, gateway):
        with pytest.raises(BadRequestError):
            gateway.construct_event(b"{}", None)


class TestSignedWebhookEndpoint:
    """Prawdziwa weryfikacja podpisu Stripe, zdarzenie przechodzi przez caly endpoint."""

    @pytest.fixture
    def pending(self, db, make, customer, notifier, hub):
        product = make.product(price="40.00", stock=5)
        order = OrderService(db, notification_service=notifier, hub=hub).create_order(
            customer.id, SHIPPING, "credit_card", order_items=[{"product_id": product.id, "quantity": 1}]
        )
        payment = PaymentModel(
            order_id=order["id"],
            payment_method="credit_card",
            transaction_id="pi_live_1",
            amount=Decimal("40.00"),
            currency="usd",
            status="pending",
        )
        db.add(payment)
        db.commit()
        notifier.sent.clear()
        return {"order_id": order["id"], "payment_id": payment.id}

    def post_event(self, client, event):
        payload = json.dumps(event).encode()
        return client.post(
            "/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": signed(payload), "Content-Type": "application/json"},
        )

    def test_succeeded_event_completes_order(self, client, db, pending, notifier):
        event = {
            "id": "evt_1",
            "object": "event",
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_live_1", "object": "payment_intent", "status": "succeeded",
                                "amount": 4000, "metadata": {"order_id": str(pending["order_id"])}}},
        }

        response = self.post_event(client, event)

        assert response.status_code == 200
        db.expire_all()
        payment = db.get(PaymentModel, pending["payment_id"])
        assert payment.status == "completed"
        assert payment.gateway_response["metadata"] == {"order_id": str(pending["order_id"])}
        assert db.get(OrderModel, pending["order_id"]).payment_status == "completed"
        assert notifier.names() == ["send_order_confirmation_task"]

    def test_failed_event_records_gateway_message(self, client, db, pending):
        event = {
            "id": "evt_2",
            "object": "event",
            "type": "payment_intent.payment_failed",
            "data": {"object": {"id": "pi_live_1", "object": "payment_intent", "status": "requires_payment_method",
                                "last_payment_error": {"message": "Your card was declined."}}},
        }

        response = self.post_event(client, event)

        assert response.status_code == 200
        db.expire_all()
        payment = db.get(PaymentModel, pending["payment_id"])
        assert payment.status == "failed"
        assert payment.failure_reason == "Your card was declined."
        assert db.get(OrderModel, pending["order_id"]).payment_status == "failed"
