from pydantic import BaseModel, Field, StrictInt
from typing import List

class OrderLineIn(BaseModel):
    product_id: str
    quantity: StrictInt = Field(ge=1)

class OrderIn(BaseModel):
    table_id: str
    items: List[OrderLineIn] = Field(min_length=1)

class OrderStatusIn(BaseModel):
    # checked against OrderStatus by the service
    status: str
