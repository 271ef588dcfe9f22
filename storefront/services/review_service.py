# storefront/services/review_service.py
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from storefront.data.models.review import ReviewModel
from storefront.data.models.user import UserModel
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.repos.review_repo import ReviewRepo
from storefront.utils.errors import ConflictError, ForbiddenError, NotFoundError
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def review_to_dict(review: ReviewModel) -> Dict[str, Any]:
    return {
        "id": review.id,
        "user_id": review.user_id,
        "user_name": review.user.name if review.user else None,
        "product_id": review.product_id,
        "rating": review.rating,
        "title": review.title,
        "comment": review.comment,
        "is_verified_purchase": review.is_verified_purchase,
        "created_at": review.created_at,
    }


class ReviewService:
    """Kazdy zapis recenzji przelicza average_rating / rating_count produktu od zera."""

    def __init__(self, db: Session):
        self.repo = ReviewRepo(db)
        self.products = ProductRepo(db)
        self.orders = OrderRepo(db)

    def list_product_reviews(self, product_id: int) -> List[Dict[str, Any]]:
        if not self.products.get_active_product(product_id):
            raise NotFoundError("Product not found")
        return [review_to_dict(r) for r in self.repo.list_for_product(product_id)]

    def create_review(self, user: UserModel, product_id: int, rating: int, title: str, comment: str) -> Dict[str, Any]:
        product = self.products.get_active_product(product_id)
        if not product:
            raise NotFoundError("Product not found")

        if self.repo.get_user_review(user.id, product_id):
            raise ConflictError("You have already reviewed this product")

        try:
            review = self.repo.add_review(
                ReviewModel(
                    user_id=user.id,
                    product_id=product_id,
                    rating=rating,
                    title=title,
                    comment=comment,
                    is_verified_purchase=self.orders.user_bought_product(user.id, product_id),
                )
            )
            self._refresh_rating(product)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Recenzja {review.id} ({rating}/5) dla produktu {product_id}")
        return review_to_dict(review)

    def delete_review(self, user: UserModel, review_id: int):
        review = self.repo.get_review(review_id)
        if not review:
            raise NotFoundError("Review not found")

        if review.user_id != user.id and not user.is_admin:
            raise ForbiddenError("Not authorized to delete this review")

        product = self.products.get_product(review.product_id)
        try:
            self.repo.delete_review(review)
            self._refresh_rating(product)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

    def _refresh_rating(self, product):
        product.average_rating, product.rating_count = self.repo.rating_stats(product.id)
