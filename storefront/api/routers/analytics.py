# storefront/api/routers/analytics.py
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import require_admin
from storefront.data.database import get_db
from storefront.domain.schemas import ApiResponse, ok
from storefront.services.analytics_service import AnalyticsService

router = APIRouter(
    prefix="/admin/analytics",
    tags=["analytics"],
    dependencies=[Depends(require_admin)],
)


def get_service(db: Session = Depends(get_db)):
    return AnalyticsService(db)


@router.get("/dashboard", response_model=ApiResponse[Dict[str, Any]])
def dashboard(svc: AnalyticsService = Depends(get_service)):
    return ok(svc.dashboard())


@router.get("/sales", response_model=ApiResponse[Dict[str, Any]])
def sales(period: str = "30d", svc: AnalyticsService = Depends(get_service)):
    return ok(svc.sales(period))


@router.get("/users", response_model=ApiResponse[List[Dict[str, Any]]])
def users(
    sort_by: str = "total_spent",
    order: str = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    svc: AnalyticsService = Depends(get_service),
):
    rows, pagination = svc.users(sort_by, order, page, limit)
    return ok(rows, pagination=pagination)


@router.get("/products", response_model=ApiResponse[List[Dict[str, Any]]])
def products(
    sort_by: str = "total_revenue",
    order: str = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    svc: AnalyticsService = Depends(get_service),
):
    rows, pagination = svc.products(sort_by, order, page, limit)
    return ok(rows, pagination=pagination)


@router.get("/products/{product_id}", response_model=ApiResponse[Dict[str, Any]])
def product_detail(product_id: int, svc: AnalyticsService = Depends(get_service)):
    return ok(svc.product_detail(product_id))
