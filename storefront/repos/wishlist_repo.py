from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from storefront.data.models.wishlist import WishlistModel


class WishlistRepo:
    def __init__(self, db: Session):
        self.db = db

    def list_items(self, user_id: int) -> List[WishlistModel]:
        return list(
            self.db.execute(
                select(WishlistModel)
                .options(joinedload(WishlistModel.product))
                .where(WishlistModel.user_id == user_id)
                .order_by(WishlistModel.added_at.desc(), WishlistModel.id.desc())
            ).scalars().all()
        )

    def get_item(self, user_id: int, product_id: int) -> WishlistModel | None:
        return self.db.execute(
            select(WishlistModel).where(
                WishlistModel.user_id == user_id,
                WishlistModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def add_item(self, item: WishlistModel) -> WishlistModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_item(self, item: WishlistModel):
        self.db.delete(item)
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
