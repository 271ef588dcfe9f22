from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, Text, DateTime, Numeric, JSON
from sqlalchemy.orm import relationship

from storefront.data.database import Base

PAYMENT_ROW_STATUSES = ("pending", "processing", "completed", "failed", "refunded")


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)

    payment_method = Column(String(30), nullable=False)
    transaction_id = Column(String(255), nullable=True, unique=True)
    # ujemna kwota = zwrot
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(String(20), nullable=False, default="pending", index=True)
    gateway_response = Column(JSON, nullable=True)
    failure_reason = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)

    order = relationship("OrderModel", back_populates="payments")
