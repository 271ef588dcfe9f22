# storefront/tasks/maintenance.py
"""
Okresowe sweepy (celery beat). Kazda funkcja dostaje sesje i zaleznosci,
task celery tylko otwiera sesje i je wywoluje.
Blad jednego rekordu jest logowany i nie przerywa reszty batcha.
"""
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import Any, Dict

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.repos.cart_repo import CartRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.analytics_service import AnalyticsService
from storefront.services.live_hub import LiveHub
from storefront.services.live_relay import LiveRelay
from storefront.services.marker_service import MarkerService
from storefront.services.notification_service import NotificationService
from storefront.services.search_service import SearchService
from storefront.utils.settings import (
    ABANDONED_CART_AFTER_SECONDS,
    ABANDONED_CART_REMINDER_TTL,
    LOW_STOCK_ALERT_TTL,
    LOW_STOCK_THRESHOLD,
    SEARCH_HISTORY_LIMIT,
    STALE_PAYMENT_SECONDS,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

marker_service = MarkerService()
notification_service = NotificationService()
# worker nie ma petli LiveHub, eventy ida do API przez redis pub/sub
live_relay = LiveRelay()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def check_low_stock(
    db: Session,
    markers: MarkerService,
    notifier: NotificationService,
    hub: LiveHub | LiveRelay | None = None,
    threshold: int = LOW_STOCK_THRESHOLD,
) -> Dict[str, Any]:
    hub = hub or live_relay
    products = ProductRepo(db).low_stock_products(threshold)
    alerted = []

    for product in products:
        try:
            # znacznik 24h, alert dla tego samego produktu nie idzie drugi raz
            if not markers.mark(MarkerService.low_stock_key(product.id), LOW_STOCK_ALERT_TTL):
                continue
            alerted.append(product.id)
            hub.publish(
                "inventory_alert",
                {"product_id": product.id, "stock_level": product.stock, "timestamp": _now()},
            )
        except Exception as e:
            logger.error(f"Low stock check dla produktu {product.id} nieudany: {e}")

    if alerted and not notifier.send_low_stock_alert(alerted):
        # mail nie poszedl, zdejmij znaczniki zeby nastepny sweep sprobowal ponownie
        for product_id in alerted:
            try:
                markers.clear(MarkerService.low_stock_key(product_id))
            except Exception as e:
                logger.warning(f"Nie udalo sie zdjac znacznika dla produktu {product_id}: {e}")

    logger.info(f"Low stock: {len(products)} produktow ponizej progu, {len(alerted)} nowych alertow")
    return {"checked": len(products), "alerted": alerted}


def send_abandoned_cart_reminders(
    db: Session,
    markers: MarkerService,
    notifier: NotificationService,
) -> Dict[str, Any]:
    carts = CartRepo(db).abandoned_carts(_now() - timedelta(seconds=ABANDONED_CART_AFTER_SECONDS))
    sent = 0

    for cart in carts:
        key = MarkerService.abandoned_cart_key(cart.user_id)
        try:
            if not markers.mark(key, ABANDONED_CART_REMINDER_TTL):
                continue
            if notifier.send_abandoned_cart(cart.user_id):
                sent += 1
            else:
                markers.clear(key)
        except Exception as e:
            logger.error(f"Przypomnienie o koszyku dla usera {cart.user_id} nieudane: {e}")

    logger.info(f"Abandoned carts: {len(carts)} kandydatow, {sent} przypomnien")
    return {"candidates": len(carts), "sent": sent}


def cleanup_expired_carts(db: Session) -> Dict[str, Any]:
    """
    Koszyki po expires_at z pozycjami: ilosci wracaja do stocku produktow,
    pozycje usuniete, total / item_count wyzerowane. Jedna transakcja na koszyk.
    """
    repo = CartRepo(db)
    products = ProductRepo(db)
    cart_ids = [c.id for c in repo.expired_carts(_now())]
    cleaned, failed = 0, 0

    for cart_id in cart_ids:
        try:
            cart = repo.get_cart_for_update(cart_id)
            items = repo.get_cart_items(cart_id) if cart else []
            if not items:
                # inny przebieg juz to posprzatal
                db.rollback()
                continue

            locked = products.lock_products([i.product_id for i in items])
            for item in items:
                product = locked.get(item.product_id)
                if product is not None:
                    product.stock += item.quantity

            repo.delete_all_items(cart_id)
            db.expire(cart, ["items"])
            cart.total_amount = Decimal("0.00")
            cart.item_count = 0
            repo.commit()
            cleaned += 1
        except Exception as e:
            repo.rollback()
            failed += 1
            logger.error(f"Czyszczenie koszyka {cart_id} nieudane: {e}")

    logger.info(f"Expired carts: {cleaned} wyczyszczonych, {failed} bledow")
    return {"cleaned": cleaned, "failed": failed}


def reconcile_stale_payments(db: Session) -> Dict[str, Any]:
    repo = PaymentRepo(db)
    payment_ids = [p.id for p in repo.stale_pending(_now() - timedelta(seconds=STALE_PAYMENT_SECONDS))]
    failed_count, errors = 0, 0

    for payment_id in payment_ids:
        try:
            payment = repo.get_payment(payment_id, lock=True)
            if not payment or payment.status != "pending":
                repo.rollback()
                continue

            payment.status = "failed"
            payment.failure_reason = "Payment timeout"
            if payment.order.payment_status != "completed":
                payment.order.payment_status = "failed"
            repo.commit()
            failed_count += 1
        except Exception as e:
            repo.rollback()
            errors += 1
            logger.error(f"Reconcile platnosci {payment_id} nieudany: {e}")

    logger.info(f"Stale payments: {failed_count} oznaczonych jako failed, {errors} bledow")
    return {"failed": failed_count, "errors": errors}


def cleanup_search_history(db: Session, keep: int = SEARCH_HISTORY_LIMIT) -> Dict[str, Any]:
    return {"removed": SearchService(db).cleanup_search_history(keep)}


def generate_weekly_report(db: Session) -> Dict[str, Any]:
    return jsonable_encoder(AnalyticsService(db).weekly_report())


# =====================================================
# CELERY TASKS
# =====================================================
def _run(job, *args):
    db = SessionLocal()
    try:
        return job(db, *args)
    finally:
        db.close()


@celery_app.task(name="storefront.tasks.maintenance.check_low_stock_task")
def check_low_stock_task():
    logger.info("Check low stock task started")
    return _run(check_low_stock, marker_service, notification_service, live_relay)


@celery_app.task(name="storefront.tasks.maintenance.send_abandoned_cart_reminders_task")
def send_abandoned_cart_reminders_task():
    logger.info("Abandoned cart reminders task started")
    return _run(send_abandoned_cart_reminders, marker_service, notification_service)


@celery_app.task(name="storefront.tasks.maintenance.cleanup_expired_carts_task")
def cleanup_expired_carts_task():
    logger.info("Expire carts task started")
    return _run(cleanup_expired_carts)


@celery_app.task(name="storefront.tasks.maintenance.reconcile_stale_payments_task")
def reconcile_stale_payments_task():
    logger.info("Reconcile stale payments task started")
    return _run(reconcile_stale_payments)


@celery_app.task(name="storefront.tasks.maintenance.cleanup_search_history_task")
def cleanup_search_history_task():
    logger.info("Cleanup search history task started")
    return _run(cleanup_search_history)


@celery_app.task(name="storefront.tasks.maintenance.generate_weekly_report_task")
def generate_weekly_report_task():
    logger.info("Weekly report task started")
    return _run(generate_weekly_report)
