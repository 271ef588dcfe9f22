# storefront/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field

T = TypeVar("T")

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled", "refunded"]
PaymentMethod = Literal["credit_card", "debit_card", "paypal", "cash_on_delivery"]


# =====================================================
# ENVELOPES
# =====================================================
class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class ApiResponse(BaseModel, Generic[T]):
    """Standardowa koperta odpowiedzi: {success, data, message?}."""

    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    pagination: Optional[Pagination] = None


def ok(data: Any = None, message: str | None = None, pagination: dict | None = None) -> dict:
    return {"success": True, "data": data, "message": message, "pagination": pagination}


def paginate(page: int, limit: int, total: int) -> dict:
    return {
        "current_page": page,
        "total_pages": (total + limit - 1) // limit if limit else 0,
        "total_items": total,
        "items_per_page": limit,
    }


# =====================================================
# AUTH / USERS
# =====================================================
class RegisterIn(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class AuthOut(UserOut):
    token: str


# =====================================================
# CATALOG
# =====================================================
class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class CategoryOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ProductCreate(BaseModel):
    """Schema dla tworzenia produktu (admin)."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    category_id: int = Field(..., gt=0)
    brand: Optional[str] = Field(None, max_length=50)
    stock: int = Field(0, ge=0)
    images: List[str] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    category_id: Optional[int] = Field(None, gt=0)
    brand: Optional[str] = Field(None, max_length=50)
    stock: Optional[int] = Field(None, ge=0)
    images: Optional[List[str]] = None


class ProductOut(BaseModel):
    id: int
    name: str
    description: str
    price: Decimal
    category_id: int
    category: Optional[CategoryOut] = None
    brand: Optional[str] = None
    stock: int
    images: List[str] = Field(default_factory=list)
    average_rating: Decimal
    rating_count: int
    is_active: bool
    created_at: datetime


# =====================================================
# CART
# =====================================================
class CartItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    quantity: int = Field(1, gt=0, description="Ilość produktu (musi być > 0)")


class CartItemUpdate(BaseModel):
    """Ilosc 0 usuwa pozycje z koszyka."""

    quantity: int = Field(..., ge=0)


class CartItemOut(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    price: Decimal
    subtotal: Decimal
    in_stock: bool
    added_at: datetime


class CartOut(BaseModel):
    id: Optional[int] = None
    items: List[CartItemOut]
    total_amount: Decimal
    item_count: int
    expires_at: Optional[datetime] = None


# =====================================================
# ORDERS
# =====================================================
class OrderItemIn(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)


class ShippingAddressIn(BaseModel):
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)


class OrderCreate(BaseModel):
    """Brak order_items = zamowienie z aktualnego koszyka uzytkownika."""

    order_items: Optional[List[OrderItemIn]] = Field(None, min_length=1)
    shipping_address: ShippingAddressIn
    payment_method: PaymentMethod
    order_notes: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    price: Decimal


class OrderOut(BaseModel):
    id: int
    user_id: int
    total_amount: Decimal
    status: str
    payment_status: str
    payment_method: str
    shipping_address: ShippingAddressIn
    order_notes: Optional[str] = None
    items: List[OrderItemOut]
    created_at: datetime


# =====================================================
# PAYMENTS
# =====================================================
class PaymentIntentIn(BaseModel):
    order_id: int = Field(..., gt=0)
    payment_method: str = "stripe"


class PaymentIntentOut(BaseModel):
    client_secret: Optional[str] = None
    payment_id: int


class ConfirmPaymentIn(BaseModel):
    payment_id: int = Field(..., gt=0)
    payment_intent_id: str = Field(..., min_length=1)


class ConfirmPaymentOut(BaseModel):
    payment_id: int
    status: str
    gateway_status: Optional[str] = None


class RefundIn(BaseModel):
    order_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    reason: Optional[str] = None


class RefundOut(BaseModel):
    refund_id: str
    amount: Decimal
    status: Optional[str] = None


class PaymentMethodOut(BaseModel):
    id: str
    name: str
    type: str
    supported: bool


# =====================================================
# WISHLIST / REVIEWS / ADDRESSES / SEARCH
# =====================================================
class WishlistIn(BaseModel):
    product_id: int = Field(..., gt=0)


class ProductSummary(BaseModel):
    id: int
    name: str
    price: Decimal
    stock: int
    images: List[str] = Field(default_factory=list)
    is_active: bool


class WishlistItemOut(BaseModel):
    id: int
    product_id: int
    added_at: datetime
    product: Optional[ProductSummary] = None


class ReviewIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=1, max_length=255)
    comment: str = Field(..., min_length=1)


class ReviewOut(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    product_id: int
    rating: int
    title: str
    comment: str
    is_verified_purchase: bool
    created_at: datetime


class AddressIn(BaseModel):
    type: Literal["home", "work", "other"] = "home"
    is_default: bool = False
    recipient_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, pattern=r"^\+?[\d\s\-\(\)]{7,20}$")
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)


class AddressOut(AddressIn):
    id: int

    model_config = ConfigDict(from_attributes=True)


class SearchTrackIn(BaseModel):
    query: str = Field(..., max_length=255)


class PopularSearchOut(BaseModel):
    term: str
    count: int


# =====================================================
# NOTIFICATIONS (admin)
# =====================================================
class PromotionalIn(BaseModel):
    user_ids: List[int] = Field(..., min_length=1, max_length=1000)
    subject: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)


class PromotionalOut(BaseModel):
    queued: bool
    recipients: int
