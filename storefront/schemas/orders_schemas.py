from pydantic import BaseModel
from typing import List, Literal, Optional
from datetime import datetime
from decimal import Decimal


class OrderItemRead(BaseModel):
    product_id: int
    name: str
    price: Decimal
    quantity: int
    line_total: Decimal

    class Config:
        from_attributes = True


class StatusEventRead(BaseModel):
    status: str
    note: Optional[str]
    updated_by: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: int
    user_id: int
    items: List[OrderItemRead]
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    currency: str
    status: str
    payment_status: str
    payment_session_id: str
    payment_intent_id: Optional[str]
    shipping_address: Optional[dict]
    carrier: Optional[str]
    tracking_number: Optional[str]
    tracking_url: Optional[str]
    estimated_delivery: Optional[datetime]
    paid_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    status_history: List[StatusEventRead] = []

    class Config:
        from_attributes = True


class OrderSummary(BaseModel):
    id: int
    total: Decimal
    currency: str
    status: str
    payment_status: str
    item_count: int
    created_at: datetime


class OrderStatusUpdate(BaseModel):
    status: Literal["pending", "processing", "shipped", "delivered", "cancelled"]
    note: Optional[str] = None
    carrier: Optional[Literal["UPS", "FedEx", "USPS", "DHL", "Other"]] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


class PurchaseCheck(BaseModel):
    has_purchased: bool
