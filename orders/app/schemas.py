from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

OrderStatus = Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

class OrderItemIn(CamelModel):
    product_id: int = Field(gt=0)
    quantity: int = Field(gt=0)

class OrderCreate(CamelModel):
    user_id: int = Field(gt=0)
    items: List[OrderItemIn] = Field(min_length=1)

class OrderStatusUpdate(BaseModel):
    status: OrderStatus

class OrderItemOut(CamelModel):
    product_id: int
    quantity: int
    price: float
    product_name: str

class OrderSummary(CamelModel):
    id: int
    user_id: int
    total_amount: float
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class OrderOut(OrderSummary):
    items: List[OrderItemOut]

class EnrichedOrderOut(OrderOut):
    user_name: str

class OrderEnvelope(CamelModel):
    order: EnrichedOrderOut

class OrderCreated(CamelModel):
    message: str
    order: OrderOut

class OrderUpdated(CamelModel):
    message: str
    order: OrderSummary

class EnrichedOrderList(CamelModel):
    orders: List[EnrichedOrderOut]

class OrderList(CamelModel):
    orders: List[OrderOut]
