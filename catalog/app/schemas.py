from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

class ProductIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    stock: int = Field(ge=0)
    category: str = Field(default="", max_length=100)

class ProductPatch(BaseModel):
    """
    Sparse update. A field counts as present when the client sent it,
    so stock=0 or description="" are real updates.
    """
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    stock: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = Field(default=None, max_length=100)

    @field_validator("*")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)

class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    price: float
    stock: int
    category: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class ProductEnvelope(BaseModel):
    product: ProductOut

class ProductSaved(ProductEnvelope):
    message: str

class ProductList(BaseModel):
    products: List[ProductOut]
