# storefront/celery_worker.py
from celery import Celery
from celery.schedules import crontab

from storefront.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# WAZNE: explicite importuj taski, zeby celery je zarejestrowal
celery_app.conf.imports = (
    "storefront.tasks.maintenance",
    "storefront.services.notification_service",
)

# beat schedule, wszystkie sweepy sa idempotentne wiec nakladajace sie uruchomienia sa ok
celery_app.conf.beat_schedule = {
    "check-low-stock-hourly": {
        "task": "storefront.tasks.maintenance.check_low_stock_task",
        "schedule": crontab(minute=0),
    },
    "abandoned-cart-reminders-daily": {
        "task": "storefront.tasks.maintenance.send_abandoned_cart_reminders_task",
        "schedule": crontab(hour=10, minute=0),
    },
    "cleanup-expired-carts-daily": {
        "task": "storefront.tasks.maintenance.cleanup_expired_carts_task",
        "schedule": crontab(hour=2, minute=0),
    },
    "reconcile-stale-payments-daily": {
        "task": "storefront.tasks.maintenance.reconcile_stale_payments_task",
        "schedule": crontab(hour=3, minute=0),
    },
    "cleanup-search-history-daily": {
        "task": "storefront.tasks.maintenance.cleanup_search_history_task",
        "schedule": crontab(hour=4, minute=0),
    },
    "weekly-report": {
        "task": "storefront.tasks.maintenance.generate_weekly_report_task",
        "schedule": crontab(hour=9, minute=0, day_of_week=1),
    },
}

celery_app.conf.timezone = "UTC"
