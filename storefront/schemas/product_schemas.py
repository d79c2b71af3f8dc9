from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime
from decimal import Decimal


class ProductImage(BaseModel):
    url: str
    alt: Optional[str] = None


class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    stock: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=10, ge=0)
    category_id: Optional[int] = None
    # outOfStock is derived from stock, never set directly
    status: Literal["draft", "published"] = "draft"
    tags: Optional[str] = None
    images: List[ProductImage] = []


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    stock: Optional[int] = Field(default=None, ge=0)
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)
    category_id: Optional[int] = None
    status: Optional[Literal["draft", "published"]] = None
    tags: Optional[str] = None
    images: Optional[List[ProductImage]] = None


class StockUpdate(BaseModel):
    stock: int = Field(ge=0)


class ProductRead(BaseModel):
    id: int
    name: str
    description: str
    price: Decimal
    stock: int
    status: str
    in_stock: bool
    low_stock: bool
    category_id: Optional[int]
    tags: Optional[str]
    images: Optional[list]
    average_rating: float
    review_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
