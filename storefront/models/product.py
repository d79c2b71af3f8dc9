from sqlmodel import SQLModel, Field ,Relationship
from sqlalchemy import Column, DateTime, JSON, CheckConstraint
from typing import Optional, TYPE_CHECKING , List
from datetime import datetime
from storefront.utils.clock import utcnow
from decimal import Decimal

from storefront.constants.product_status import DRAFT


if TYPE_CHECKING:
    from .category import Category

class Product(SQLModel, table=True):
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
    )

    #main info
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: str
    tags: Optional[str] = None #comma separated string

    #Shop Details
    price: Decimal = Field(max_digits=12, decimal_places=2)
    stock: int = Field(default=0)
    low_stock_threshold: int = Field(default=10)
    # draft | published | outOfStock, see constants.product_status
    status: str = Field(default=DRAFT, index=True)

    #Ratings (denormalised from approved reviews)
    average_rating: float = Field(default=0.0)
    review_count: int = Field(default=0)

    images: Optional[list] = Field(default=None, sa_column=Column(JSON))

    #timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    #category
    category_id: Optional[int] = Field(default=None, foreign_key="category.id")
    category: Optional["Category"] = Relationship(back_populates="products")

    @property
    def in_stock(self) -> bool:
         return self.stock > 0

    @property
    def low_stock(self) -> bool:
        return 0 < self.stock <= self.low_stock_threshold
