from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, DateTime, JSON
from typing import List, Optional
from datetime import datetime
from storefront.utils.clock import utcnow
from decimal import Decimal

from storefront.constants.order_status import PENDING, PAYMENT_PENDING
from storefront.models.order_item import OrderItem
from storefront.models.order_event import OrderStatusEvent


class Order(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    subtotal: Decimal = Field(max_digits=12, decimal_places=2)
    tax: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    shipping: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    total: Decimal = Field(max_digits=12, decimal_places=2)
    currency: str = Field(default="INR")

    # fulfilment lifecycle
    status: str = Field(default=PENDING, index=True)
    # payment lifecycle
    payment_status: str = Field(default=PAYMENT_PENDING, index=True)

    # one order per payment session, enforced by the unique index
    payment_session_id: str = Field(index=True, unique=True)
    payment_intent_id: Optional[str] = Field(default=None, index=True, unique=True)

    # address as it was at checkout, never a live reference
    shipping_address: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    estimated_delivery: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    paid_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    items: List["OrderItem"] = Relationship(back_populates="order")
    status_history: List["OrderStatusEvent"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"order_by": "OrderStatusEvent.id"},
    )
