from pydantic import BaseModel, Field, StrictInt
from typing import Optional, Literal

StockMovementTypeLiteral = Literal["RESTOCK", "SALE", "ADJUSTMENT", "SPOILAGE", "RETURN", "INVENTORY_COUNT"]

class StockAdjustIn(BaseModel):
    delta: StrictInt
    type: Optional[StockMovementTypeLiteral] = None
    note: Optional[str] = Field(default=None, min_length=1, max_length=500)
    created_by_id: Optional[str] = None

class StockSetIn(BaseModel):
    quantity: StrictInt = Field(ge=0)
    type: Optional[StockMovementTypeLiteral] = None
    note: Optional[str] = Field(default=None, min_length=1, max_length=500)
    created_by_id: Optional[str] = None

