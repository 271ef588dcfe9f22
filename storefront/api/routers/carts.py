# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.schemas import ApiResponse, CartItemIn, CartItemUpdate, CartOut, ok
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session = Depends(get_db)):
    return CartService(db)


@router.get("", response_model=ApiResponse[CartOut])
def get_cart(user: UserModel = Depends(get_current_user), svc: CartService = Depends(get_service)):
    return ok(svc.get_cart(user.id))


@router.post("/add", response_model=ApiResponse[CartOut])
def add_item(
    payload: CartItemIn,
    user: UserModel = Depends(get_current_user),
    svc: CartService = Depends(get_service),
):
    """
    Dodaje produkt do koszyka (tworzy koszyk jesli nie istnieje).
    Ten sam produkt = zwiekszenie ilosci istniejacej pozycji.
    """
    return ok(svc.add_item(user.id, payload.product_id, payload.quantity), "Item added to cart")


@router.put("/items/{item_id}", response_model=ApiResponse[CartOut])
def update_item(
    item_id: int,
    payload: CartItemUpdate,
    user: UserModel = Depends(get_current_user),
    svc: CartService = Depends(get_service),
):
    return ok(svc.update_item(user.id, item_id, payload.quantity), "Cart updated")


@router.delete("/items/{item_id}", response_model=ApiResponse[CartOut])
def remove_item(
    item_id: int,
    user: UserModel = Depends(get_current_user),
    svc: CartService = Depends(get_service),
):
    return ok(svc.remove_item(user.id, item_id), "Item removed from cart")


@router.delete("/clear", response_model=ApiResponse[CartOut])
def clear_cart(user: UserModel = Depends(get_current_user), svc: CartService = Depends(get_service)):
    return ok(svc.clear(user.id), "Cart cleared")


@router.post("/move-to-wishlist/{item_id}", response_model=ApiResponse[CartOut])
def move_to_wishlist(
    item_id: int,
    user: UserModel = Depends(get_current_user),
    svc: CartService = Depends(get_service),
):
    return ok(svc.move_to_wishlist(user.id, item_id), "Item moved to wishlist")
