import logging

from sqlalchemy import func
from sqlmodel import Session, select

from storefront.constants.order_status import CANCELLED, PAYMENT_PAID
from storefront.models.order import Order
from storefront.models.order_item import OrderItem
from storefront.models.product import Product
from storefront.models.review import Review
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)


def has_purchased(session: Session, user_id: int, product_id: int) -> bool:
    """A paid, non-cancelled order of the user contains the product."""
    statement = (
        select(OrderItem.id)
        .join(Order, Order.id == OrderItem.order_id)
        .where(
            Order.user_id == user_id,
            OrderItem.product_id == product_id,
            Order.payment_status == PAYMENT_PAID,
            Order.status != CANCELLED,
        )
        .limit(1)
    )
    return session.exec(statement).first() is not None


def refresh_product_rating(session: Session, product_id: int) -> dict:
    """
    Recompute the denormalised rating of a product from its approved reviews.
    Caller commits.
    """
    average, count = session.exec(
        select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.product_id == product_id,
            Review.is_approved == True,  # noqa: E712
        )
    ).one()

    stats = {
        "average_rating": round(float(average), 2) if average is not None else 0.0,
        "review_count": count,
    }

    product = session.get(Product, product_id)
    if product is not None:
        product.average_rating = stats["average_rating"]
        product.review_count = stats["review_count"]
        product.updated_at = utcnow()
        session.add(product)

    logger.info(f"Product {product_id} rating -> {stats['average_rating']} ({count} reviews)")
    return stats
