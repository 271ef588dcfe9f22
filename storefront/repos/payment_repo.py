# storefront/repos/payment_repo.py
from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy import select, func
from sqlalchemy.orm import Session, joinedload

from storefront.data.models.payment import PaymentModel


class PaymentRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_payment(self, payment_id: int, lock: bool = False) -> PaymentModel | None:
        stmt = (
            select(PaymentModel)
            .options(joinedload(PaymentModel.order))
            .where(PaymentModel.id == payment_id)
        )
        if lock:
            stmt = stmt.with_for_update(of=PaymentModel).execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_transaction_id(self, transaction_id: str, lock: bool = False) -> PaymentModel | None:
        stmt = (
            select(PaymentModel)
            .options(joinedload(PaymentModel.order))
            .where(PaymentModel.transaction_id == transaction_id)
        )
        if lock:
            stmt = stmt.with_for_update(of=PaymentModel).execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_completed_payment(self, order_id: int) -> PaymentModel | None:
        return self.db.execute(
            select(PaymentModel)
            .where(PaymentModel.order_id == order_id, PaymentModel.status == "completed")
            .order_by(PaymentModel.id)
            .limit(1)
        ).scalar_one_or_none()

    def refunded_total(self, order_id: int) -> Decimal:
        # zwroty sa zapisane jako ujemne kwoty
        total = self.db.execute(
            select(func.coalesce(func.sum(PaymentModel.amount), 0)).where(
                PaymentModel.order_id == order_id,
                PaymentModel.status == "refunded",
            )
        ).scalar_one()
        return -Decimal(str(total))

    def stale_pending(self, created_before: datetime) -> List[PaymentModel]:
        return list(
            self.db.execute(
                select(PaymentModel)
                .options(joinedload(PaymentModel.order))
                .where(PaymentModel.status == "pending", PaymentModel.created_at <= created_before)
            ).scalars().all()
        )

    def add_payment(self, payment: PaymentModel) -> PaymentModel:
        self.db.add(payment)
        self.db.flush()
        return payment

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
