import logging
from typing import Optional

from sqlmodel import Session, select, or_

from storefront.constants.order_status import (
    PENDING,
    PROCESSING,
    PAYMENT_FAILED,
    PAYMENT_PAID,
)
from storefront.errors import OrderNotFinalized
from storefront.models.order import Order
from storefront.services.order_event_service import record_status_change
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)

CAPTURED_EVENTS = {"payment.captured", "order.paid"}
FAILED_EVENTS = {"payment.failed"}


def _find_order(session: Session, payment_id: Optional[str], session_id: Optional[str]) -> Optional[Order]:
    conditions = []
    if payment_id:
        conditions.append(Order.payment_intent_id == payment_id)
    if session_id:
        conditions.append(Order.payment_session_id == session_id)
    if not conditions:
        return None
    return session.exec(select(Order).where(or_(*conditions))).first()


def apply_payment_event(session: Session, event: dict) -> Optional[Order]:
    """
    Corroborate an order's payment status from a gateway webhook.

    Orders are located by payment id or by payment session (Razorpay order)
    id. The capture webhook usually arrives before the customer's browser
    finalizes the order; that case raises ``OrderNotFinalized`` so the
    gateway delivers the event again later. Failures for unknown orders are
    acknowledged and dropped.
    """
    event_type = event.get("event")
    if event_type not in CAPTURED_EVENTS | FAILED_EVENTS:
        logger.info(f"Ignoring webhook event {event_type}")
        return None

    payload = event.get("payload") or {}
    payment = (payload.get("payment") or {}).get("entity") or {}
    payment_id = payment.get("id")
    session_id = payment.get("order_id") or ((payload.get("order") or {}).get("entity") or {}).get("id")

    order = _find_order(session, payment_id, session_id)
    if order is None:
        if event_type in CAPTURED_EVENTS and (payment_id or session_id):
            logger.warning(
                f"Webhook {event_type}: session {session_id} not finalized yet, asking for redelivery"
            )
            raise OrderNotFinalized(f"No order for payment session {session_id} yet")
        logger.info(f"Webhook {event_type}: no order for payment {payment_id} / session {session_id}")
        return None

    if event_type in CAPTURED_EVENTS:
        # ✅ duplicate deliveries leave the order unchanged
        order.payment_status = PAYMENT_PAID
        if order.paid_at is None:
            order.paid_at = utcnow()
        if order.payment_intent_id is None and payment_id:
            order.payment_intent_id = payment_id
        if order.status == PENDING:
            record_status_change(session, order, PROCESSING, note="Payment confirmed")
    else:
        if order.payment_status != PAYMENT_PAID:
            order.payment_status = PAYMENT_FAILED

    order.updated_at = utcnow()
    session.add(order)
    session.commit()
    session.refresh(order)

    logger.info(f"Webhook {event_type}: order {order.id} payment {order.payment_status}, status {order.status}")
    return order
