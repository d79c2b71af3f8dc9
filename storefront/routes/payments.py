import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, Query, Request
from sqlmodel import Session
from storefront.config import settings
from storefront.database import get_session
from storefront.dependencies.payments import get_order_finalizer, get_payment_gateway
from storefront.models.user import User
from storefront.schemas.checkout_schemas import PaymentConfigResponse
from storefront.schemas.orders_schemas import OrderRead
from storefront.services.order_finalizer import OrderFinalizer
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.payment_service import apply_payment_event
from storefront.utils.token import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/config", response_model=PaymentConfigResponse)
def payment_config(gateway: PaymentGateway = Depends(get_payment_gateway)):
    return PaymentConfigResponse(key_id=gateway.key_id, currency=settings.currency)


@router.get("/finalize", response_model=OrderRead)
def finalize_order(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    finalizer: OrderFinalizer = Depends(get_order_finalizer),
    current_user: User = Depends(get_current_user)
):
    # the cart is cleared in the same transaction that creates the order
    order = finalizer.finalize_order(current_user.id, session_id)
    return OrderRead.model_validate(order)


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    body = await request.body()
    event = gateway.verify_webhook(body, x_razorpay_signature)

    apply_payment_event(session, event)
    return {"received": True}
