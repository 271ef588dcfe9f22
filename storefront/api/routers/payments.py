# storefront/api/routers/payments.py
from typing import List

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user, get_gateway, get_live_hub, get_notifier, require_admin
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.schemas import (
    ApiResponse,
    ConfirmPaymentIn,
    ConfirmPaymentOut,
    PaymentIntentIn,
    PaymentIntentOut,
    PaymentMethodOut,
    RefundIn,
    RefundOut,
    ok,
)
from storefront.services.live_hub import LiveHub
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


def get_service(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    notifier: NotificationService = Depends(get_notifier),
    hub: LiveHub = Depends(get_live_hub),
):
    return PaymentService(db, gateway, notification_service=notifier, hub=hub)


@router.post("/create-intent", response_model=ApiResponse[PaymentIntentOut])
def create_intent(
    payload: PaymentIntentIn,
    user: UserModel = Depends(get_current_user),
    svc: PaymentService = Depends(get_service),
):
    return ok(svc.create_payment_intent(payload.order_id, user, payload.payment_method))


@router.post("/confirm", response_model=ApiResponse[ConfirmPaymentOut])
def confirm_payment(
    payload: ConfirmPaymentIn,
    user: UserModel = Depends(get_current_user),
    svc: PaymentService = Depends(get_service),
):
    result = svc.confirm_payment(payload.payment_id, payload.payment_intent_id, user)
    if result["status"] != "completed":
        # bramka nie potwierdzila, wiersze bez zmian
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Payment not successful", "data": jsonable_encoder(result)},
        )
    return ok(result, "Payment confirmed successfully")


@router.post("/refund", response_model=ApiResponse[RefundOut], dependencies=[Depends(require_admin)])
def refund(payload: RefundIn, svc: PaymentService = Depends(get_service)):
    return ok(svc.process_refund(payload.order_id, payload.amount, payload.reason), "Refund processed successfully")


@router.get("/methods", response_model=ApiResponse[List[PaymentMethodOut]])
def payment_methods():
    return ok(PaymentService.list_payment_methods())
