# storefront/repos/order_repo.py
from typing import List, Tuple

from sqlalchemy import select, exists
from sqlalchemy.orm import Session, selectinload, joinedload

from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.repos.query import count_rows


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .options(
                selectinload(OrderModel.items).joinedload(OrderItemModel.product),
                joinedload(OrderModel.user),
            )
            .where(OrderModel.id == order_id)
        ).scalar_one_or_none()

    def list_user_orders(self, user_id: int) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .options(selectinload(OrderModel.items).joinedload(OrderItemModel.product))
                .where(OrderModel.user_id == user_id)
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars().all()
        )

    def list_orders(self, status: str | None, limit: int, offset: int) -> Tuple[List[OrderModel], int]:
        base = select(OrderModel)
        if status:
            base = base.where(OrderModel.status == status)

        total = count_rows(self.db, base)

        rows = self.db.execute(
            base.options(selectinload(OrderModel.items).joinedload(OrderItemModel.product))
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars().all()
        return list(rows), total

    def lock_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def user_bought_product(self, user_id: int, product_id: int) -> bool:
        return self.db.execute(
            select(
                exists().where(
                    OrderItemModel.order_id == OrderModel.id,
                    OrderModel.user_id == user_id,
                    OrderItemModel.product_id == product_id,
                    OrderModel.status != "cancelled",
                )
            )
        ).scalar()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
