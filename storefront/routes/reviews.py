from storefront.utils.clock import utcnow
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
from storefront.database import get_session
from storefront.models.product import Product
from storefront.models.review import Review
from storefront.models.user import User
from storefront.schemas.review_schemas import ReviewCreate, ReviewRead, ReviewUpdate
from storefront.services.review_service import has_purchased, refresh_product_rating
from storefront.utils.pagination import paginate
from storefront.utils.token import get_current_user


router = APIRouter()


# ---------------------------------------------------------
# CREATE A REVIEW
# ---------------------------------------------------------

@router.post("", status_code=201)
def create_review(
    data: ReviewCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    product = session.get(Product, data.product_id)
    if not product:
        raise HTTPException(404, "Product not found")

    review = Review(
        product_id=product.id,
        user_id=current_user.id,
        rating=data.rating,
        comment=data.comment.strip(),
        is_verified_purchase=has_purchased(session, current_user.id, product.id),
    )
    session.add(review)

    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        raise HTTPException(409, "You have already reviewed this product")

    stats = refresh_product_rating(session, product.id)
    session.commit()
    session.refresh(review)

    return {
        "message": "Review submitted successfully",
        "review": ReviewRead.model_validate(review),
        "stats": stats,
    }


# ---------------------------------------------------------
# LIST REVIEWS
# ---------------------------------------------------------

@router.get("")
def list_reviews(
    product_id: Optional[int] = Query(None, alias="productId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    page: int = 1,
    limit: int = 10,
    session: Session = Depends(get_session)
):
    query = select(Review).where(Review.is_approved == True)  # noqa: E712
    if product_id:
        query = query.where(Review.product_id == product_id)
    if user_id:
        query = query.where(Review.user_id == user_id)

    query = query.order_by(Review.created_at.desc(), Review.id.desc())
    return paginate(
        session=session,
        query=query,
        page=page,
        limit=limit,
        transform=ReviewRead.model_validate,
    )


# ---------------------------------------------------------
# CALLER'S OWN REVIEW OF A PRODUCT
# ---------------------------------------------------------

@router.get("/user-review")
def get_user_review(
    product_id: int = Query(..., alias="productId"),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    # includes a review hidden by moderation, the author can still edit it
    review = session.exec(
        select(Review).where(
            Review.product_id == product_id,
            Review.user_id == current_user.id,
        )
    ).first()

    return {
        "has_review": review is not None,
        "review": ReviewRead.model_validate(review) if review else None,
    }


# ---------------------------------------------------------
# UPDATE A REVIEW
# ---------------------------------------------------------

@router.put("/{review_id}")
def update_review(
    review_id: int,
    data: ReviewUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    review = session.get(Review, review_id)

    if not review or review.user_id != current_user.id:
        raise HTTPException(404, "Review not found")

    if data.rating is not None:
        review.rating = data.rating

    if data.comment is not None:
        review.comment = data.comment.strip()

    review.updated_at = utcnow()
    session.add(review)

    stats = refresh_product_rating(session, review.product_id)
    session.commit()
    session.refresh(review)

    return {
        "message": "Review updated successfully",
        "review": ReviewRead.model_validate(review),
        "stats": stats,
    }


# ---------------------------------------------------------
# DELETE REVIEW
# ---------------------------------------------------------

@router.delete("/{review_id}")
def delete_review(
    review_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    review = session.get(Review, review_id)

    if not review or (review.user_id != current_user.id and not current_user.is_admin):
        raise HTTPException(404, "Review not found")

    product_id = review.product_id
    session.delete(review)

    stats = refresh_product_rating(session, product_id)
    session.commit()

    return {"message": "Review deleted successfully", "stats": stats}
