from decimal import Decimal
from typing import List, Tuple

from sqlalchemy import select, func
from sqlalchemy.orm import Session, joinedload

from storefront.data.models.review import ReviewModel


class ReviewRepo:
    def __init__(self, db: Session):
        self.db = db

    def list_for_product(self, product_id: int) -> List[ReviewModel]:
        return list(
            self.db.execute(
                select(ReviewModel)
                .options(joinedload(ReviewModel.user))
                .where(ReviewModel.product_id == product_id, ReviewModel.is_active.is_(True))
                .order_by(ReviewModel.created_at.desc(), ReviewModel.id.desc())
            ).scalars().all()
        )

    def get_review(self, review_id: int) -> ReviewModel | None:
        return self.db.get(ReviewModel, review_id)

    def get_user_review(self, user_id: int, product_id: int) -> ReviewModel | None:
        return self.db.execute(
            select(ReviewModel).where(ReviewModel.user_id == user_id, ReviewModel.product_id == product_id)
        ).scalar_one_or_none()

    def rating_stats(self, product_id: int) -> Tuple[Decimal, int]:
        avg, count = self.db.execute(
            select(func.avg(ReviewModel.rating), func.count(ReviewModel.id)).where(
                ReviewModel.product_id == product_id,
                ReviewModel.is_active.is_(True),
            )
        ).one()
        if not count:
            return Decimal("0.00"), 0
        return Decimal(str(avg)).quantize(Decimal("0.01")), count

    def add_review(self, review: ReviewModel) -> ReviewModel:
        self.db.add(review)
        self.db.flush()
        return review

    def delete_review(self, review: ReviewModel):
        self.db.delete(review)
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
