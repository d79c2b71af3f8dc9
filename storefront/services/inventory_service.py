import logging
from typing import NamedTuple, Optional

from sqlalchemy import case, update
from sqlmodel import Session

from storefront.constants.product_status import DRAFT, PUBLISHED, OUT_OF_STOCK
from storefront.models.product import Product
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)


class StockLevel(NamedTuple):
    product_id: int
    stock: int
    status: str


def decrement_if_at_least(session: Session, product_id: int, amount: int) -> Optional[StockLevel]:
    """
    Subtract ``amount`` from a product's stock only if at least ``amount`` is
    left, as one UPDATE statement. The row lock taken by the UPDATE serialises
    concurrent checkouts of the same product.

    The product flips to outOfStock in the same statement when the old stock
    equals ``amount``. Returns the new level, or None when nothing matched
    (not enough stock, or the product is gone).
    """
    statement = (
        update(Product)
        .where(Product.id == product_id, Product.stock >= amount)
        .values(
            stock=Product.stock - amount,
            status=case(
                (Product.stock == amount, OUT_OF_STOCK),
                else_=Product.status,
            ),
            updated_at=utcnow(),
        )
        .returning(Product.id, Product.stock, Product.status)
        .execution_options(synchronize_session="fetch")
    )

    row = session.execute(statement).first()
    if row is None:
        logger.info(f"Stock decrement refused: product {product_id}, requested {amount}")
        return None

    level = StockLevel(*row)
    logger.info(
        f"Stock decremented: product {product_id} -{amount} -> {level.stock} ({level.status})"
    )
    return level


def restock(session: Session, product_id: int, amount: int) -> Optional[StockLevel]:
    """Put stock back (order cancelled). Returns None if the product no longer exists."""
    statement = (
        update(Product)
        .where(Product.id == product_id)
        .values(
            stock=Product.stock + amount,
            status=case(
                (Product.status == OUT_OF_STOCK, PUBLISHED),
                else_=Product.status,
            ),
            updated_at=utcnow(),
        )
        .returning(Product.id, Product.stock, Product.status)
        .execution_options(synchronize_session="fetch")
    )

    row = session.execute(statement).first()
    if row is None:
        logger.warning(f"Restock skipped: product {product_id} no longer exists")
        return None

    level = StockLevel(*row)
    logger.info(f"Restocked product {product_id} +{amount} -> {level.stock}")
    return level


def derive_status(requested: str, stock: int) -> str:
    """Status an admin edit should persist, given the resulting stock."""
    if requested == DRAFT:
        return DRAFT
    if stock <= 0:
        return OUT_OF_STOCK
    return PUBLISHED
