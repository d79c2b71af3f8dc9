import logging
from storefront.utils.clock import utcnow
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete
from sqlmodel import Session, select
from storefront.database import get_session
from storefront.dependencies.admin import require_admin
from storefront.models.cart import CartItem
from storefront.models.category import Category
from storefront.models.product import Product
from storefront.models.review import Review
from storefront.models.user import User
from storefront.schemas.product_schemas import ProductCreate, ProductRead, ProductUpdate, StockUpdate
from storefront.services.inventory_service import derive_status
from storefront.constants.product_status import DRAFT, PUBLISHED, PRODUCT_STATUSES
from storefront.utils.pagination import paginate

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_category(session: Session, category_id: Optional[int]):
    if category_id is not None and not session.get(Category, category_id):
        raise HTTPException(404, "Category not found")


@router.get("")
def list_all_products(
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin)
):
    query = select(Product)
    if status:
        if status not in PRODUCT_STATUSES:
            raise HTTPException(400, "Invalid status")
        query = query.where(Product.status == status)

    return paginate(
        session=session,
        query=query.order_by(Product.id.desc()),
        page=page,
        limit=limit,
        transform=ProductRead.model_validate,
    )


@router.post("", response_model=ProductRead, status_code=201)
def create_product(
    data: ProductCreate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin)
):
    _check_category(session, data.category_id)

    product = Product(
        **data.model_dump(exclude={"status", "images"}),
        images=[image.model_dump() for image in data.images],
        status=derive_status(data.status, data.stock),
    )
    session.add(product)
    session.commit()
    session.refresh(product)

    logger.info(f"Product {product.id} created ({product.status}, stock {product.stock})")
    return product


@router.put("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: int,
    data: ProductUpdate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin)
):
    product = session.get(Product, product_id)
    if not product:
        raise HTTPException(404, "Product not found")

    updates = data.model_dump(exclude_unset=True)
    if "category_id" in updates:
        _check_category(session, updates["category_id"])
    if "images" in updates and updates["images"] is not None:
        updates["images"] = [image.model_dump() for image in data.images]

    requested_status = updates.pop("status", None)
    for key, value in updates.items():
        setattr(product, key, value)

    if requested_status is None:
        requested_status = DRAFT if product.status == DRAFT else PUBLISHED
    product.status = derive_status(requested_status, product.stock)
    product.updated_at = utcnow()

    session.add(product)
    session.commit()
    session.refresh(product)
    return product


@router.patch("/{product_id}/stock", response_model=ProductRead)
def update_stock(
    product_id: int,
    data: StockUpdate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin)
):
    product = session.get(Product, product_id)
    if not product:
        raise HTTPException(404, "Product not found")

    requested_status = DRAFT if product.status == DRAFT else PUBLISHED
    product.stock = data.stock
    product.status = derive_status(requested_status, data.stock)
    product.updated_at = utcnow()

    session.add(product)
    session.commit()
    session.refresh(product)

    logger.info(f"Stock for product {product.id} set to {product.stock} ({product.status})")
    return product


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin)
):
    product = session.get(Product, product_id)
    if not product:
        raise HTTPException(404, "Product not found")

    # order items keep their product_id, carts and reviews go with the product
    session.execute(delete(CartItem).where(CartItem.product_id == product_id))
    session.execute(delete(Review).where(Review.product_id == product_id))
    session.delete(product)
    session.commit()

    logger.info(f"Product {product_id} deleted")
    return {"message": "Product deleted"}
