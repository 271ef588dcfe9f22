# storefront/services/payment_gateway.py
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict

import stripe

from storefront.utils.errors import PaymentGatewayError, BadRequestError
from storefront.utils.retry import gateway_retry
from storefront.utils.settings import (
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    STRIPE_CURRENCY,
    GATEWAY_TIMEOUT_SECONDS,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """12.345 -> 1235 (centy), zaokraglenie half-up jak przy Math.round."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_plain(value: Any) -> Any:
    """StripeObject nie jest dictem, wiec wszystko co wychodzi z SDK zamieniamy rekurencyjnie na dict / list."""
    if isinstance(value, stripe.StripeObject):
        value = value.to_dict()
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_plain(item) for item in value]
    return value


def _intent_dict(intent) -> Dict[str, Any]:
    intent = to_plain(intent)
    return {
        "id": intent["id"],
        "status": intent["status"],
        "client_secret": intent.get("client_secret"),
        "amount": intent.get("amount"),
        "currency": intent.get("currency"),
        "metadata": dict(intent.get("metadata") or {}),
    }


class PaymentGateway:
    """
    Adapter na Stripe SDK.
    -timeout na kazde zapytanie (RequestsClient)
    -retry tylko na bledy polaczenia
    -kazdy inny blad Stripe -> PaymentGatewayError (502)
    """

    def __init__(
        self,
        api_key: str | None = None,
        webhook_secret: str | None = None,
        currency: str | None = None,
        timeout: int | None = None,
    ):
        self.api_key = api_key or STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or STRIPE_WEBHOOK_SECRET
        self.currency = currency or STRIPE_CURRENCY
        self.timeout = timeout or GATEWAY_TIMEOUT_SECONDS

        stripe.api_key = self.api_key
        stripe.default_http_client = stripe.RequestsClient(timeout=self.timeout)

    def create_intent(self, amount: Decimal, metadata: Dict[str, Any]) -> Dict[str, Any]:
        try:
            intent = self._create_intent(to_minor_units(amount), {k: str(v) for k, v in metadata.items()})
        except stripe.StripeError as e:
            logger.error(f"Stripe create intent nieudane: {e}")
            raise PaymentGatewayError(f"Payment gateway error: {e.user_message or 'unable to create payment'}")
        logger.info(f"Stripe intent {intent['id']} utworzony ({metadata})")
        return _intent_dict(intent)

    def retrieve_intent(self, intent_id: str) -> Dict[str, Any]:
        try:
            intent = self._retrieve_intent(intent_id)
        except stripe.InvalidRequestError as e:
            raise BadRequestError(f"Unknown payment intent: {intent_id}") from e
        except stripe.StripeError as e:
            logger.error(f"Stripe retrieve intent {intent_id} nieudane: {e}")
            raise PaymentGatewayError("Payment gateway error: unable to verify payment")
        return _intent_dict(intent)

    def refund(self, intent_id: str, amount: Decimal, reason: str | None = None) -> Dict[str, Any]:
        try:
            refund = to_plain(self._refund(intent_id, to_minor_units(amount), reason))
        except stripe.StripeError as e:
            logger.error(f"Stripe refund dla {intent_id} nieudany: {e}")
            raise PaymentGatewayError(f"Refund failed: {e.user_message or 'payment gateway error'}")
        logger.info(f"Stripe refund {refund['id']} dla {intent_id}: {refund['status']}")
        return {"id": refund["id"], "status": refund["status"], "amount": refund["amount"]}

    def construct_event(self, payload: bytes, signature: str | None) -> Dict[str, Any]:
        """Weryfikacja podpisu webhooka, zly payload / podpis -> 400."""
        if not signature:
            raise BadRequestError("Missing Stripe-Signature header")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            logger.warning(f"Webhook: niepoprawny payload: {e}")
            raise BadRequestError("Invalid payload")
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook: niepoprawny podpis: {e}")
            raise BadRequestError("Invalid signature")
        return to_plain(event)

    # ---- surowe wywolania SDK z retry ----
    @gateway_retry()
    def _create_intent(self, amount_cents: int, metadata: Dict[str, str]):
        return stripe.PaymentIntent.create(
            amount=amount_cents,
            currency=self.currency,
            metadata=metadata,
            automatic_payment_methods={"enabled": True},
        )

    @gateway_retry()
    def _retrieve_intent(self, intent_id: str):
        return stripe.PaymentIntent.retrieve(intent_id)

    @gateway_retry()
    def _refund(self, intent_id: str, amount_cents: int, reason: str | None):
        params: Dict[str, Any] = {"payment_intent": intent_id, "amount": amount_cents}
        if reason:
            params["metadata"] = {"reason": reason}
        return stripe.Refund.create(**params)
