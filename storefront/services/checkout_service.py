import json
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Tuple

from sqlmodel import Session, select

from storefront.constants.product_status import PUBLISHED
from storefront.errors import CheckoutError
from storefront.models.cart import CartItem
from storefront.models.product import Product
from storefront.models.user import User
from storefront.services.order_finalizer import SHIPPING_LINE_INDEX
from storefront.services.payment_gateway import CheckoutSession, LineItem, PaymentGateway

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_line_items(session: Session, user_id: int) -> List[Tuple[Product, CartItem, LineItem]]:
    cart_items = session.exec(
        select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id)
    ).all()

    if not cart_items:
        raise CheckoutError("Cart is empty")

    lines = []
    for cart_item in cart_items:
        product = session.get(Product, cart_item.product_id)
        if not product or product.status != PUBLISHED:
            raise CheckoutError(f"Product {cart_item.product_id} is no longer available")
        if product.stock < cart_item.quantity:
            raise CheckoutError(
                f"Only {product.stock} of '{product.name}' left in stock"
            )

        unit_amount = to_minor_units(product.price)
        lines.append((
            product,
            cart_item,
            LineItem(
                description=product.name,
                quantity=cart_item.quantity,
                amount_total=unit_amount * cart_item.quantity,
            ),
        ))
    return lines


def create_checkout_session(
    *,
    session: Session,
    gateway: PaymentGateway,
    user: User,
    shipping_address: dict,
    settings,
) -> CheckoutSession:
    """
    Build the payment session for the user's cart.

    product_ids is written in exactly the order of the product line items, and
    the structured ``items`` list repeats the pairing explicitly, so the order
    finalizer can map charged lines back to products. The shipping line is
    identified by position, never by its description.
    """
    lines = build_line_items(session, user.id)

    line_items = [line for _, _, line in lines]
    subtotal = sum(line.amount_total for line in line_items)

    shipping = to_minor_units(settings.shipping_fee)
    shipping_line_index = None
    if shipping > 0:
        shipping_line_index = len(line_items)
        line_items.append(LineItem(
            description=settings.shipping_line_description,
            quantity=1,
            amount_total=shipping,
        ))

    tax = to_minor_units(Decimal(subtotal) / 100 * settings.tax_rate)
    amount_total = subtotal + max(shipping, 0) + tax

    metadata = {
        "user_id": str(user.id),
        "product_ids": json.dumps([product.id for product, _, _ in lines]),
        "items": json.dumps([
            {
                "product_id": product.id,
                "quantity": cart_item.quantity,
                "unit_amount": line.amount_total // cart_item.quantity,
                "name": product.name,
            }
            for product, cart_item, line in lines
        ]),
        "shipping_address": json.dumps(shipping_address),
        SHIPPING_LINE_INDEX: json.dumps(shipping_line_index),
    }

    checkout = gateway.create_session(
        line_items=line_items,
        metadata=metadata,
        amount_total=amount_total,
        currency=settings.currency,
        receipt=f"user-{user.id}-cart-{lines[0][1].id}",
    )

    logger.info(
        f"Checkout session {checkout.id} created for user {user.id}: "
        f"{len(lines)} items, {amount_total} {settings.currency}"
    )
    return checkout
