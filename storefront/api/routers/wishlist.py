# storefront/api/routers/wishlist.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.schemas import ApiResponse, CartOut, WishlistIn, WishlistItemOut, ok
from storefront.services.wishlist_service import WishlistService

router = APIRouter(prefix="/wishlist", tags=["wishlist"])


def get_service(db: Session = Depends(get_db)):
    return WishlistService(db)


@router.get("", response_model=ApiResponse[List[WishlistItemOut]])
def get_wishlist(user: UserModel = Depends(get_current_user), svc: WishlistService = Depends(get_service)):
    return ok(svc.list_items(user.id))


@router.post("/add", response_model=ApiResponse[WishlistItemOut], status_code=201)
def add_to_wishlist(
    payload: WishlistIn,
    user: UserModel = Depends(get_current_user),
    svc: WishlistService = Depends(get_service),
):
    return ok(svc.add(user.id, payload.product_id), "Product added to wishlist")


@router.delete("/{product_id}")
def remove_from_wishlist(
    product_id: int,
    user: UserModel = Depends(get_current_user),
    svc: WishlistService = Depends(get_service),
):
    svc.remove(user.id, product_id)
    return ok(message="Product removed from wishlist")


@router.post("/move-to-cart/{product_id}", response_model=ApiResponse[CartOut])
def move_to_cart(
    product_id: int,
    user: UserModel = Depends(get_current_user),
    svc: WishlistService = Depends(get_service),
):
    return ok(svc.move_to_cart(user.id, product_id), "Product moved to cart")
