from pydantic import BaseModel, Field
from typing import Optional

class AddressCreate(BaseModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str = Field(min_length=1)
    is_default: bool = False

    def snapshot(self) -> dict:
        return self.model_dump(exclude={"is_default"})

class AddressRead(BaseModel):
    id: int
    street: str
    city: str
    state: Optional[str]
    zip_code: Optional[str]
    country: str
    is_default: bool

    class Config:
        from_attributes = True

class AddressUpdate(BaseModel):
    street: Optional[str] = Field(default=None, min_length=1)
    city: Optional[str] = Field(default=None, min_length=1)
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = Field(default=None, min_length=1)
    is_default: Optional[bool] = None
