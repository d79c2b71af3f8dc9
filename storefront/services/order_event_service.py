import logging
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from storefront.models.order import Order
from storefront.models.order_event import OrderStatusEvent
from storefront.constants.order_status import ALLOWED_TRANSITIONS, CANCELLED
from storefront.errors import InvalidStatusTransition
from storefront.services.inventory_service import restock
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)


def record_status_change(
    session: Session,
    order: Order,
    status: str,
    updated_by: Optional[int] = None,
    note: Optional[str] = None,
) -> OrderStatusEvent:
    """
    Set the order status and append to its status history.
    Caller commits.
    """
    now = utcnow()

    event = OrderStatusEvent(
        status=status,
        note=note or f"Status changed to {status}",
        updated_by=updated_by,
        created_at=now,
    )
    order.status = status
    order.updated_at = now
    order.status_history.append(event)

    session.add(order)
    return event


def change_order_status(
    session: Session,
    order: Order,
    new_status: str,
    admin_id: int,
    note: Optional[str] = None,
    tracking: Optional[dict] = None,
) -> Order:
    """
    Admin status update. Cancelling restocks every item whose product still
    exists; the status change and the restock commit together.

    The transition is claimed with a conditional UPDATE on the status that
    was read, so a concurrent change of the same order (two cancels racing)
    leaves exactly one winner and restocks once.
    """
    if new_status != order.status:
        allowed = ALLOWED_TRANSITIONS.get(order.status, [])
        if new_status not in allowed:
            raise InvalidStatusTransition(
                f"Cannot change order status from {order.status} to {new_status}"
            )

        claimed = session.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == order.status)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            session.rollback()
            logger.warning(f"Order {order.id}: status changed concurrently, {new_status} refused")
            raise InvalidStatusTransition(
                f"Order {order.id} was updated by someone else, reload it and try again"
            )

        if new_status == CANCELLED:
            for item in order.items:
                restock(session, item.product_id, item.quantity)

        record_status_change(session, order, new_status, updated_by=admin_id, note=note)
        logger.info(f"Order {order.id}: {new_status} by admin {admin_id}")

    for key, value in (tracking or {}).items():
        if value is not None:
            setattr(order, key, value)

    order.updated_at = utcnow()
    session.add(order)
    session.commit()
    session.refresh(order)
    return order
