import json
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from storefront.constants.order_status import PENDING, PAYMENT_PAID
from storefront.errors import (
    InsufficientStock,
    MalformedSession,
    MissingSessionId,
    PaymentNotCompleted,
    ProductMissing,
    SessionOwnershipMismatch,
)
from storefront.models.cart import CartItem
from storefront.models.order import Order
from storefront.models.order_item import OrderItem
from storefront.models.product import Product
from storefront.services.inventory_service import decrement_if_at_least
from storefront.services.order_event_service import record_status_change
from storefront.services.payment_gateway import LineItem, PaymentGateway, PaymentSession
from storefront.services.unit_of_work import UnitOfWork
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# metadata key naming the position of the shipping line item
SHIPPING_LINE_INDEX = "shipping_line_index"


def to_amount(minor_units: int) -> Decimal:
    return (Decimal(minor_units) / 100).quantize(CENT)


@dataclass
class DerivedItem:
    product_id: int
    quantity: int
    price: Decimal
    name: str


@dataclass
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


class OrderFinalizer:
    """
    Turns a paid payment session into an order.

    Stock decrements and the order insert share one transaction: either every
    product is decremented and the order exists, or nothing changed. A session
    that was already finalized returns its existing order.
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        unit_of_work: UnitOfWork,
        shipping_description: str = "Shipping",
    ):
        self.gateway = gateway
        self.unit_of_work = unit_of_work
        self.shipping_description = shipping_description.strip().lower()

    def finalize_order(self, user_id: int, session_id: Optional[str]) -> Order:
        if not session_id or not session_id.strip():
            raise MissingSessionId()
        session_id = session_id.strip()

        existing = self._existing_order(session_id)
        if existing is not None:
            return self._replay(existing, user_id)

        payment_session = self.gateway.retrieve_session(session_id)
        self._check_owner(payment_session, user_id)

        if payment_session.payment_status != "paid":
            raise PaymentNotCompleted(
                f"Payment for session {session_id} is {payment_session.payment_status}"
            )

        items = self.derive_items(payment_session)
        totals = self.compute_totals(payment_session)
        shipping_address = self._load_json(payment_session, "shipping_address", dict, required=False)

        try:
            order = self.unit_of_work.run(
                lambda db: self._record_purchase(db, user_id, payment_session, items, totals, shipping_address)
            )
        except IntegrityError:
            # a concurrent call for the same session committed first
            existing = self._existing_order(session_id)
            if existing is None:
                raise
            logger.info(f"Session {session_id} finalized concurrently, returning order {existing.id}")
            return self._replay(existing, user_id)

        logger.info(
            f"Order {order.id} finalized for user {user_id} from session {session_id} "
            f"({len(items)} items, total {order.total})"
        )
        return order

    # -------- session parsing --------

    def is_shipping(self, line: LineItem) -> bool:
        return line.description.strip().lower() == self.shipping_description

    def split_lines(self, payment_session: PaymentSession) -> Tuple[List[LineItem], List[LineItem]]:
        """
        Separate product lines from shipping lines.

        Checkout records where the shipping line sits (``null`` when there is
        none), so a product that happens to share the shipping description is
        still a product. Sessions without that marker match on description.
        """
        lines = payment_session.line_items
        if SHIPPING_LINE_INDEX not in payment_session.metadata:
            return (
                [line for line in lines if not self.is_shipping(line)],
                [line for line in lines if self.is_shipping(line)],
            )

        index = self._load_json(payment_session, SHIPPING_LINE_INDEX, (int, type(None)))
        if index is None:
            return list(lines), []
        if isinstance(index, bool) or not 0 <= index < len(lines):
            raise MalformedSession(f"Shipping line index {index!r} is out of range")
        return lines[:index] + lines[index + 1:], [lines[index]]

    def derive_items(self, payment_session: PaymentSession) -> List[DerivedItem]:
        product_lines, _ = self.split_lines(payment_session)
        if not product_lines:
            raise MalformedSession("Payment session has no product line items")

        if "items" in payment_session.metadata:
            return self._items_from_metadata(payment_session, product_lines)

        # Positional pairing: checkout wrote product_ids in line-item order.
        product_ids = self._load_json(payment_session, "product_ids", list)
        if len(product_ids) != len(product_lines):
            raise MalformedSession(
                f"Session lists {len(product_ids)} product ids for {len(product_lines)} line items"
            )

        return [
            DerivedItem(
                product_id=self._product_id(raw_id),
                quantity=line.quantity,
                price=(Decimal(line.amount_total) / 100 / line.quantity).quantize(CENT, ROUND_HALF_UP),
                name=line.description,
            )
            for line, raw_id in zip(product_lines, product_ids)
        ]

    def _items_from_metadata(self, payment_session, product_lines) -> List[DerivedItem]:
        raw_items = self._load_json(payment_session, "items", list)
        if len(raw_items) != len(product_lines):
            raise MalformedSession(
                f"Session lists {len(raw_items)} items for {len(product_lines)} line items"
            )

        items = []
        charged = 0
        for raw in raw_items:
            if not isinstance(raw, dict):
                raise MalformedSession("Session item is not an object")
            try:
                quantity = int(raw["quantity"])
                unit_amount = int(raw["unit_amount"])
            except (KeyError, TypeError, ValueError) as e:
                raise MalformedSession("Session item is missing quantity or unit_amount") from e
            if quantity < 1 or unit_amount < 0:
                raise MalformedSession("Session item has an invalid quantity or amount")

            charged += unit_amount * quantity
            items.append(DerivedItem(
                product_id=self._product_id(raw.get("product_id")),
                quantity=quantity,
                price=to_amount(unit_amount),
                name=str(raw.get("name") or ""),
            ))

        if charged != sum(line.amount_total for line in product_lines):
            raise MalformedSession("Session items do not match the charged line items")
        return items

    def compute_totals(self, payment_session: PaymentSession) -> OrderTotals:
        """Totals come from what the gateway charged, never from the catalog."""
        product_lines, shipping_lines = self.split_lines(payment_session)
        subtotal = sum(line.amount_total for line in product_lines)
        shipping = sum(line.amount_total for line in shipping_lines)

        if payment_session.amount_subtotal != subtotal + shipping:
            raise MalformedSession("Session subtotal does not match its line items")

        tax = payment_session.amount_total - subtotal - shipping
        if tax < 0:
            raise MalformedSession("Session total is lower than its line items")

        return OrderTotals(
            subtotal=to_amount(subtotal),
            tax=to_amount(tax),
            shipping=to_amount(shipping),
            total=to_amount(payment_session.amount_total),
        )

    def _check_owner(self, payment_session: PaymentSession, user_id: int) -> None:
        owner = payment_session.metadata.get("user_id")
        if not owner:
            raise MalformedSession("Payment session does not name its purchaser")
        if owner != str(user_id):
            raise SessionOwnershipMismatch()

    @staticmethod
    def _load_json(payment_session, key, expected_type, required=True):
        raw = payment_session.metadata.get(key)
        if raw is None:
            if required:
                raise MalformedSession(f"Payment session metadata is missing '{key}'")
            return None
        try:
            value = json.loads(raw)
        except ValueError as e:
            raise MalformedSession(f"Payment session metadata '{key}' is not valid JSON") from e
        if not isinstance(value, expected_type):
            raise MalformedSession(f"Payment session metadata '{key}' has the wrong shape")
        return value

    @staticmethod
    def _product_id(raw) -> int:
        if raw is None or raw == "" or isinstance(raw, bool):
            raise MalformedSession("Payment session has a line item without a product id")
        try:
            product_id = int(raw)
        except (TypeError, ValueError) as e:
            raise MalformedSession(f"Invalid product id {raw!r} in payment session") from e
        if product_id < 1:
            raise MalformedSession(f"Invalid product id {raw!r} in payment session")
        return product_id

    # -------- storage --------

    def _record_purchase(
        self,
        db: Session,
        user_id: int,
        payment_session: PaymentSession,
        items: List[DerivedItem],
        totals: OrderTotals,
        shipping_address: Optional[dict],
    ) -> Order:
        # rows are locked in product id order so overlapping orders cannot deadlock
        by_product = sorted(items, key=lambda item: item.product_id)

        for item in by_product:
            if db.get(Product, item.product_id) is None:
                raise ProductMissing(f"Product {item.product_id} does not exist")

        for item in by_product:
            level = decrement_if_at_least(db, item.product_id, item.quantity)
            if level is None:
                raise InsufficientStock(
                    f"Not enough stock for '{item.name}' (product {item.product_id})"
                )

        now = utcnow()
        order = Order(
            user_id=user_id,
            subtotal=totals.subtotal,
            tax=totals.tax,
            shipping=totals.shipping,
            total=totals.total,
            currency=payment_session.currency.upper(),
            payment_status=PAYMENT_PAID,
            payment_session_id=payment_session.id,
            payment_intent_id=payment_session.payment_intent_id,
            shipping_address=shipping_address,
            paid_at=now,
            created_at=now,
            updated_at=now,
        )
        order.items = [
            OrderItem(
                product_id=item.product_id,
                name=item.name,
                price=item.price,
                quantity=item.quantity,
            )
            for item in items
        ]
        record_status_change(db, order, PENDING, updated_by=user_id, note="Order created")

        # the cart goes with the order that consumed it; a replay never reaches here
        db.execute(delete(CartItem).where(CartItem.user_id == user_id))

        db.flush()
        return order

    def _existing_order(self, session_id: str) -> Optional[Order]:
        with self.unit_of_work.read() as db:
            return db.exec(
                select(Order)
                .where(Order.payment_session_id == session_id)
                .options(selectinload(Order.items), selectinload(Order.status_history))
            ).first()

    def _replay(self, order: Order, user_id: int) -> Order:
        if order.user_id != user_id:
            raise SessionOwnershipMismatch()
        logger.info(f"Session {order.payment_session_id} already finalized as order {order.id}")
        return order
