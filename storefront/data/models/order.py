from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, Text, DateTime, Numeric
from sqlalchemy.orm import relationship

from storefront.data.database import Base

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled", "refunded")
PAYMENT_STATUSES = ("pending", "completed", "failed")
PAYMENT_METHODS = ("credit_card", "debit_card", "paypal", "cash_on_delivery")

# statusy liczone jako przychod w raportach
REVENUE_STATUSES = ("processing", "shipped", "delivered")


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(30), nullable=False)

    shipping_address_street = Column(String(255), nullable=False)
    shipping_address_city = Column(String(100), nullable=False)
    shipping_address_state = Column(String(100), nullable=False)
    shipping_address_zip_code = Column(String(20), nullable=False)
    shipping_address_country = Column(String(100), nullable=False)
    order_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("UserModel", back_populates="orders")
    items = relationship("OrderItemModel", back_populates="order", cascade="all, delete-orphan")
    payments = relationship("PaymentModel", back_populates="order", order_by="PaymentModel.id")
