# printshop/schemas/pricing.py
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class PriceRequestIn(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)
    width: Optional[Decimal] = None
    height: Optional[Decimal] = None
    customer_id: Optional[int] = None


class BatchPriceIn(BaseModel):
    items: List[PriceRequestIn] = Field(default_factory=list)


class PriceQuoteOut(BaseModel):
    product_id: int
    unit_price: Decimal
    line_total: Decimal
    applied_rule: Optional[int] = None
    used_fallback: bool = False
