# storefront/api/routers/notifications.py
from fastapi import APIRouter, Depends

from storefront.api.deps import get_notifier, require_admin
from storefront.domain.schemas import ApiResponse, PromotionalIn, PromotionalOut, ok
from storefront.services.notification_service import NotificationService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/admin/notifications",
    tags=["notifications"],
    dependencies=[Depends(require_admin)],
)


@router.post("/promotional", response_model=ApiResponse[PromotionalOut], status_code=202)
def send_promotional(payload: PromotionalIn, notifier: NotificationService = Depends(get_notifier)):
    # duplikaty id nie dostaja dwoch maili
    user_ids = list(dict.fromkeys(payload.user_ids))
    queued = notifier.send_promotional(user_ids, payload.subject, payload.content)
    logger.info(f"Promocja '{payload.subject}' dla {len(user_ids)} userow, w kolejce: {queued}")
    message = "Promotional notification queued" if queued else "Notification queue unavailable"
    return ok({"queued": queued, "recipients": len(user_ids)}, message)
