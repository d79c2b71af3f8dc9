from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field, Relationship

from storefront.utils.clock import utcnow

if TYPE_CHECKING:
    from storefront.models.order import Order


class OrderStatusEvent(SQLModel, table=True):
    __tablename__ = "order_event"
    id: Optional[int] = Field(default=None, primary_key=True)

    order_id: int = Field(foreign_key="order.id", index=True)
    status: str = Field(index=True)
    note: Optional[str] = None

    # None for system changes (webhooks)
    updated_by: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    order: Optional["Order"] = Relationship(back_populates="status_history")
