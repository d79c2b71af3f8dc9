from storefront.utils.clock import utcnow
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select
from storefront.database import get_session
from storefront.dependencies.admin import require_admin
from storefront.models.review import Review
from storefront.models.user import User
from storefront.schemas.review_schemas import ReviewModeration, ReviewRead
from storefront.services.review_service import refresh_product_rating
from storefront.utils.pagination import paginate

router = APIRouter()


@router.get("")
def list_reviews(
    page: int = 1,
    limit: int = 20,
    approved: Optional[bool] = None,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin)
):
    query = select(Review)
    if approved is not None:
        query = query.where(Review.is_approved == approved)

    return paginate(
        session=session,
        query=query.order_by(Review.created_at.desc(), Review.id.desc()),
        page=page,
        limit=limit,
        transform=ReviewRead.model_validate,
    )


@router.put("/{review_id}")
def moderate_review(
    review_id: int,
    data: ReviewModeration,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin)
):
    review = session.get(Review, review_id)
    if not review:
        raise HTTPException(404, "Review not found")

    review.is_approved = data.is_approved
    review.updated_at = utcnow()
    session.add(review)

    stats = refresh_product_rating(session, review.product_id)
    session.commit()
    session.refresh(review)

    return {"review": ReviewRead.model_validate(review), "stats": stats}
