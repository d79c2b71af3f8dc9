from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session
from storefront.config import settings
from storefront.database import get_session
from storefront.dependencies.payments import get_payment_gateway
from storefront.models.address import Address
from storefront.models.user import User
from storefront.schemas.checkout_schemas import CheckoutSessionRequest, CheckoutSessionResponse
from storefront.services.checkout_service import create_checkout_session
from storefront.services.payment_gateway import PaymentGateway
from storefront.utils.token import get_current_user

router = APIRouter()


@router.post("/session", response_model=CheckoutSessionResponse, status_code=201)
def create_session(
    data: CheckoutSessionRequest,
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    current_user: User = Depends(get_current_user)
):
    if data.shipping_address is not None:
        shipping_address = data.shipping_address.snapshot()
    else:
        address = session.get(Address, data.address_id)
        if not address or address.user_id != current_user.id:
            raise HTTPException(404, "Address not found")
        shipping_address = address.snapshot()

    checkout = create_checkout_session(
        session=session,
        gateway=gateway,
        user=current_user,
        shipping_address=shipping_address,
        settings=settings,
    )

    return CheckoutSessionResponse(
        session_id=checkout.id,
        amount_total=checkout.amount_total,
        currency=checkout.currency,
        key_id=checkout.key_id,
    )
