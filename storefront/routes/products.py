from decimal import Decimal
from typing import Literal, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select, or_
from storefront.constants.product_status import VISIBLE_STATUSES
from storefront.database import get_session
from storefront.models.category import Category
from storefront.models.product import Product
from storefront.schemas.product_schemas import ProductRead
from storefront.utils.pagination import paginate

router = APIRouter()

SORTS = {
    "newest": Product.created_at.desc(),
    "price_asc": Product.price.asc(),
    "price_desc": Product.price.desc(),
    "rating": Product.average_rating.desc(),
}


@router.get("")
def list_products(
    page: int = 1,
    limit: int = 12,
    category: Optional[str] = None,
    search: Optional[str] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    sort: Literal["newest", "price_asc", "price_desc", "rating"] = "newest",
    session: Session = Depends(get_session)
):
    query = select(Product).where(Product.status.in_(VISIBLE_STATUSES))

    if category:
        query = query.join(Category, Category.id == Product.category_id).where(Category.slug == category)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(Product.name.ilike(pattern), Product.description.ilike(pattern))
        )

    if min_price is not None:
        query = query.where(Product.price >= min_price)
    if max_price is not None:
        query = query.where(Product.price <= max_price)

    query = query.order_by(SORTS[sort], Product.id.desc())

    return paginate(
        session=session,
        query=query,
        page=page,
        limit=limit,
        transform=ProductRead.model_validate,
    )


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: int, session: Session = Depends(get_session)):
    product = session.get(Product, product_id)

    if not product or product.status not in VISIBLE_STATUSES:
        raise HTTPException(404, "Product not found")
    return product
