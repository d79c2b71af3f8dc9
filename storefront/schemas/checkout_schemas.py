from pydantic import BaseModel, model_validator
from typing import Optional

from storefront.schemas.address_schemas import AddressCreate


class CheckoutSessionRequest(BaseModel):
    shipping_address: Optional[AddressCreate] = None
    address_id: Optional[int] = None

    @model_validator(mode="after")
    def require_address(self):
        if self.shipping_address is None and self.address_id is None:
            raise ValueError("A shipping address or a saved address id is required")
        return self


class CheckoutSessionResponse(BaseModel):
    session_id: str
    amount_total: int
    currency: str
    key_id: Optional[str] = None


class PaymentConfigResponse(BaseModel):
    key_id: Optional[str]
    currency: str
