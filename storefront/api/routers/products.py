# storefront/api/routers/products.py
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront.api.deps import get_live_hub, require_admin
from storefront.data.database import get_db
from storefront.domain.schemas import (
    ApiResponse,
    CategoryIn,
    CategoryOut,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    ok,
)
from storefront.services.catalog_service import CatalogService
from storefront.services.live_hub import LiveHub

router = APIRouter(tags=["products"])


def get_service(db: Session = Depends(get_db), hub: LiveHub = Depends(get_live_hub)):
    return CatalogService(db, hub=hub)


@router.get("/products", response_model=ApiResponse[List[ProductOut]])
def list_products(request: Request, svc: CatalogService = Depends(get_service)):
    """
    Filtry w formie ``price[gte]=10&brand[in]=acme,globex&sort=-price``.
    Nieznane pole albo operator -> 400.
    """
    products, pagination = svc.list_products(dict(request.query_params))
    return ok(products, pagination=pagination)


@router.get("/products/{product_id}", response_model=ApiResponse[ProductOut])
def get_product(product_id: int, svc: CatalogService = Depends(get_service)):
    return ok(svc.get_product(product_id))


@router.post(
    "/products",
    response_model=ApiResponse[ProductOut],
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def create_product(payload: ProductCreate, svc: CatalogService = Depends(get_service)):
    return ok(svc.create_product(payload.model_dump()), "Product created")


@router.put("/products/{product_id}", response_model=ApiResponse[ProductOut], dependencies=[Depends(require_admin)])
def update_product(product_id: int, payload: ProductUpdate, svc: CatalogService = Depends(get_service)):
    return ok(svc.update_product(product_id, payload.model_dump(exclude_unset=True, exclude_none=True)), "Product updated")


@router.delete("/products/{product_id}", dependencies=[Depends(require_admin)])
def delete_product(product_id: int, svc: CatalogService = Depends(get_service)):
    svc.delete_product(product_id)
    return ok(message="Product deleted")


@router.get("/categories", response_model=ApiResponse[List[CategoryOut]])
def list_categories(svc: CatalogService = Depends(get_service)):
    return ok(svc.list_categories())


@router.post(
    "/categories",
    response_model=ApiResponse[CategoryOut],
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def create_category(payload: CategoryIn, svc: CatalogService = Depends(get_service)):
    return ok(svc.create_category(payload.name, payload.description), "Category created")
