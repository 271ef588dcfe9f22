# storefront/api/routers/webhooks.py
"""
Webhook Stripe. Cialo czytane surowo (podpis liczony jest z bajtow),
dlatego endpoint nie ma modelu wejsciowego.
"""
from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from storefront.api.deps import get_gateway, get_live_hub, get_notifier
from storefront.data.database import get_db
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.live_hub import LiveHub
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import PaymentGateway
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
    hub: LiveHub = Depends(get_live_hub),
):
    return FulfillmentService(db, notification_service=notifier, hub=hub)


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    gateway: PaymentGateway = Depends(get_gateway),
    svc: FulfillmentService = Depends(get_service),
):
    payload = await request.body()
    event = gateway.construct_event(payload, stripe_signature)

    event_type = event["type"]
    intent = event["data"]["object"]

    # serwis jest synchroniczny (sesja SQLAlchemy), wiec idzie do threadpoola
    if event_type == "payment_intent.succeeded":
        await run_in_threadpool(svc.complete_order_fulfillment, intent["id"], intent)
    elif event_type == "payment_intent.payment_failed":
        error = intent.get("last_payment_error") or {}
        await run_in_threadpool(svc.handle_payment_failure, intent["id"], error.get("message"))
    else:
        logger.info(f"Nieobslugiwany event Stripe: {event_type}")

    return {"received": True}
