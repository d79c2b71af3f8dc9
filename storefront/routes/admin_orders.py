# -------- ADMIN ORDERS --------
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select
from storefront.constants.order_status import ORDER_STATUSES, PAYMENT_STATUSES
from storefront.database import get_session
from storefront.dependencies.admin import require_admin
from storefront.models.order import Order
from storefront.models.user import User
from storefront.routes.orders import order_summary
from storefront.schemas.orders_schemas import OrderRead, OrderStatusUpdate
from storefront.services.order_event_service import change_order_status
from storefront.utils.pagination import paginate


router = APIRouter()


@router.get("")
def list_orders(
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    user_id: Optional[int] = None,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin)
):
    query = select(Order)

    if status:
        if status not in ORDER_STATUSES:
            raise HTTPException(400, "Invalid status")
        query = query.where(Order.status == status)

    if payment_status:
        if payment_status not in PAYMENT_STATUSES:
            raise HTTPException(400, "Invalid payment status")
        query = query.where(Order.payment_status == payment_status)

    if user_id:
        query = query.where(Order.user_id == user_id)

    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    return paginate(session=session, query=query, page=page, limit=limit, transform=order_summary)


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin)
):
    order = session.get(Order, order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    return OrderRead.model_validate(order)


@router.put("/{order_id}/status", response_model=OrderRead)
def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin)
):
    # row lock held until change_order_status commits
    order = session.get(Order, order_id, with_for_update=True)
    if not order:
        raise HTTPException(404, "Order not found")

    order = change_order_status(
        session,
        order,
        data.status,
        admin_id=admin.id,
        note=data.note,
        tracking=data.model_dump(
            include={"carrier", "tracking_number", "tracking_url", "estimated_delivery"}
        ),
    )
    return OrderRead.model_validate(order)
