from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select
from storefront.database import get_session
from storefront.models.order import Order
from storefront.models.user import User
from storefront.schemas.orders_schemas import OrderRead, OrderSummary, PurchaseCheck
from storefront.services.review_service import has_purchased
from storefront.utils.pagination import paginate
from storefront.utils.token import get_current_user

router = APIRouter()


def order_summary(order: Order) -> OrderSummary:
    return OrderSummary(
        id=order.id,
        total=order.total,
        currency=order.currency,
        status=order.status,
        payment_status=order.payment_status,
        item_count=sum(item.quantity for item in order.items),
        created_at=order.created_at,
    )


# Order history

@router.get("")
def order_history(
    page: int = 1,
    limit: int = 10,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    query = (
        select(Order)
        .where(Order.user_id == current_user.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return paginate(session=session, query=query, page=page, limit=limit, transform=order_summary)


# Declared before /{order_id} so the path is not read as an id

@router.get("/check-purchase", response_model=PurchaseCheck)
def check_purchase(
    product_id: int = Query(..., alias="productId"),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    return PurchaseCheck(has_purchased=has_purchased(session, current_user.id, product_id))


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    order = session.get(Order, order_id)

    if not order or (order.user_id != current_user.id and not current_user.is_admin):
        raise HTTPException(404, "Order not found")

    return OrderRead.model_validate(order)
