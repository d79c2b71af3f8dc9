from fastapi import Depends, Request

from storefront.config import settings
from storefront.database import engine
from storefront.services.order_finalizer import OrderFinalizer
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.unit_of_work import UnitOfWork


def get_payment_gateway(request: Request) -> PaymentGateway:
    # built once at startup, see storefront.main.lifespan
    return request.app.state.payment_gateway


def get_unit_of_work() -> UnitOfWork:
    return UnitOfWork(
        engine,
        max_attempts=settings.transaction_max_attempts,
        backoff=settings.transaction_retry_backoff,
    )


def get_order_finalizer(
    gateway: PaymentGateway = Depends(get_payment_gateway),
    unit_of_work: UnitOfWork = Depends(get_unit_of_work),
) -> OrderFinalizer:
    return OrderFinalizer(
        gateway,
        unit_of_work,
        shipping_description=settings.shipping_line_description,
    )
