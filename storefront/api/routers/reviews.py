# storefront/api/routers/reviews.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.schemas import ApiResponse, ReviewIn, ReviewOut, ok
from storefront.services.review_service import ReviewService

router = APIRouter(tags=["reviews"])


def get_service(db: Session = Depends(get_db)):
    return ReviewService(db)


@router.get("/products/{product_id}/reviews", response_model=ApiResponse[List[ReviewOut]])
def list_reviews(product_id: int, svc: ReviewService = Depends(get_service)):
    return ok(svc.list_product_reviews(product_id))


@router.post("/products/{product_id}/reviews", response_model=ApiResponse[ReviewOut], status_code=201)
def create_review(
    product_id: int,
    payload: ReviewIn,
    user: UserModel = Depends(get_current_user),
    svc: ReviewService = Depends(get_service),
):
    review = svc.create_review(user, product_id, payload.rating, payload.title, payload.comment)
    return ok(review, "Review added")


@router.delete("/reviews/{review_id}")
def delete_review(
    review_id: int,
    user: UserModel = Depends(get_current_user),
    svc: ReviewService = Depends(get_service),
):
    svc.delete_review(user, review_id)
    return ok(message="Review deleted")
