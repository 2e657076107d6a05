# printshop/schemas/quotations.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from printshop.models.order import OrderType, PaymentTerms
from printshop.models.quotation import QuotationStatus
from printshop.schemas.common import OrmOut


class QuotationItemIn(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)
    width: Optional[Decimal] = None
    height: Optional[Decimal] = None
    unit: Optional[str] = None
    description: Optional[str] = None


class QuotationItemUpdateIn(BaseModel):
    product_id: Optional[int] = None
    quantity: Optional[int] = Field(default=None, ge=1)
    width: Optional[Decimal] = None
    height: Optional[Decimal] = None
    unit: Optional[str] = None
    description: Optional[str] = None


class QuotationCreateIn(BaseModel):
    customer_id: Optional[int] = None
    outlet_id: Optional[int] = None
    valid_until: Optional[datetime] = None
    notes: Optional[str] = None
    items: List[QuotationItemIn] = Field(default_factory=list)


class QuotationUpdateIn(BaseModel):
    customer_id: Optional[int] = None
    notes: Optional[str] = None
    valid_until: Optional[datetime] = None


class QuotationStatusIn(BaseModel):
    status: QuotationStatus


class ConvertIn(BaseModel):
    order_type: Optional[OrderType] = None
    payment_terms: Optional[PaymentTerms] = None


class QuotationItemOut(OrmOut):
    id: int
    product_id: int
    description: Optional[str] = None
    quantity: int
    dimensions: Optional[Dict[str, Any]] = None
    unit_price: Decimal
    line_total: Decimal


class QuotationOut(OrmOut):
    id: int
    quote_number: str
    version: Optional[int] = 1
    customer_id: Optional[int] = None
    outlet_id: Optional[int] = None
    status: QuotationStatus
    valid_until: Optional[datetime] = None
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    notes: Optional[str] = None
    approved_by: Optional[int] = None
    converted_order_id: Optional[int] = None
    items: List[QuotationItemOut] = Field(default_factory=list)
