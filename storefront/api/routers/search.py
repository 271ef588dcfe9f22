# storefront/api/routers/search.py
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.schemas import ApiResponse, PopularSearchOut, SearchTrackIn, ok
from storefront.services.search_service import SearchParams, SearchService

router = APIRouter(prefix="/search", tags=["search"])


def get_service(db: Session = Depends(get_db)):
    return SearchService(db)


def search_params(
    q: Optional[str] = None,
    category: Optional[str] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    brand: Optional[str] = None,
    in_stock: bool = False,
    min_rating: Optional[Decimal] = Query(None, ge=0, le=5),
    sort_by: str = "relevance",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> SearchParams:
    return SearchParams(
        q=q,
        category=category,
        min_price=min_price,
        max_price=max_price,
        brand=brand,
        in_stock=in_stock,
        min_rating=min_rating,
        sort_by=sort_by,
        page=page,
        limit=limit,
    )


@router.get("", response_model=ApiResponse[Dict[str, Any]])
def search_products(params: SearchParams = Depends(search_params), svc: SearchService = Depends(get_service)):
    result = svc.search_products(params)
    return ok({"products": result["products"], "facets": result["facets"]}, pagination=result["pagination"])


@router.get("/suggestions", response_model=ApiResponse[List[str]])
def suggestions(q: Optional[str] = None, svc: SearchService = Depends(get_service)):
    return ok(svc.suggestions(q))


@router.get("/popular", response_model=ApiResponse[List[PopularSearchOut]])
def popular(limit: int = Query(10, ge=1, le=50), svc: SearchService = Depends(get_service)):
    return ok(svc.popular_searches(limit))


@router.post("/track")
def track(payload: SearchTrackIn, svc: SearchService = Depends(get_service)):
    svc.track_search(payload.query)
    return ok(message="Search tracked")
