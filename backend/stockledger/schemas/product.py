"""Product schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class ProductResponse(BaseModel):
    """Product response schema."""

    id: int
    sku: str
    name: str
    description: Optional[str] = None
    supplier_id: Optional[int] = None
    unit_price: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SupplierProductsResponse(BaseModel):
    products: List[ProductResponse]
