# storefront/api/routers/health.py
from datetime import datetime, timezone

from fastapi import APIRouter

from storefront.utils.settings import APP_ENV

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {
        "success": True,
        "message": "Server is running",
        "environment": APP_ENV,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
