# storefront/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user, get_live_hub, get_notifier, require_admin
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.schemas import ApiResponse, OrderCreate, OrderOut, OrderStatus, OrderStatusUpdate, ok
from storefront.services.live_hub import LiveHub
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
    hub: LiveHub = Depends(get_live_hub),
):
    return OrderService(db, notification_service=notifier, hub=hub)


@router.post("", response_model=ApiResponse[OrderOut], status_code=201)
def create_order(
    payload: OrderCreate,
    user: UserModel = Depends(get_current_user),
    svc: OrderService = Depends(get_service),
):
    """
    Tworzy zamowienie z podanych pozycji albo (bez order_items) z koszyka.
    Stock jest zdejmowany w tej samej transakcji, powiadomienie idzie asynchronicznie.
    """
    items = [i.model_dump() for i in payload.order_items] if payload.order_items else None
    order = svc.create_order(
        user.id,
        payload.shipping_address.model_dump(),
        payload.payment_method,
        order_items=items,
        order_notes=payload.order_notes,
    )
    return ok(order, "Order created successfully")


@router.get("", response_model=ApiResponse[List[OrderOut]], dependencies=[Depends(require_admin)])
def list_orders(
    status: OrderStatus | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    svc: OrderService = Depends(get_service),
):
    orders, pagination = svc.list_orders(status, page, limit)
    return ok(orders, pagination=pagination)


@router.get("/myorders", response_model=ApiResponse[List[OrderOut]])
def my_orders(user: UserModel = Depends(get_current_user), svc: OrderService = Depends(get_service)):
    return ok(svc.list_my_orders(user.id))


@router.get("/{order_id}", response_model=ApiResponse[OrderOut])
def get_order(
    order_id: int,
    user: UserModel = Depends(get_current_user),
    svc: OrderService = Depends(get_service),
):
    return ok(svc.get_order(order_id, user))


@router.put("/{order_id}/status", response_model=ApiResponse[OrderOut], dependencies=[Depends(require_admin)])
def update_order_status(order_id: int, payload: OrderStatusUpdate, svc: OrderService = Depends(get_service)):
    return ok(svc.update_order_status(order_id, payload.status), "Order status updated")
