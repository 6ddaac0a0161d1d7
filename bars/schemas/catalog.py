from pydantic import BaseModel, Field
from typing import Optional

class ProductIn(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    description: Optional[str] = None
    price: float = Field(ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=5, ge=0)
    unit_of_measure: Optional[str] = "unit"
    image_url: Optional[str] = None
    category: Optional[str] = None

class ProductUpdate(BaseModel):
    # no stock_quantity: stock only moves through the ledger
    name: Optional[str] = Field(default=None, min_length=1, max_length=160)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    is_available: Optional[bool] = None
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)
    unit_of_measure: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None

class TableIn(BaseModel):
    label: str
    qr_code_url: Optional[str] = None
    is_active: bool = True

class TableUpdate(BaseModel):
    label: Optional[str] = None
    qr_code_url: Optional[str] = None
    is_active: Optional[bool] = None

class TenantUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=160)
    logo_url: Optional[str] = None
    settings: Optional[dict] = None
