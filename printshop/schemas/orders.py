# printshop/schemas/orders.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from printshop.models.invoice import PaymentMethod
from printshop.models.order import OrderStatus, OrderType, PaymentTerms
from printshop.schemas.common import OrmOut


class OrderItemIn(BaseModel):
    product_id: int
    quantity: int = 1
    width: Optional[Decimal] = None
    height: Optional[Decimal] = None
    unit: Optional[str] = None
    description: Optional[str] = None
    # set only to override the engine price
    unit_price: Optional[Decimal] = None
    override_reason: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def _qty(cls, v):
        if int(v) < 1:
            raise ValueError("quantity must be at least 1")
        return int(v)


class OrderCreateIn(BaseModel):
    customer_id: Optional[int] = None
    outlet_id: Optional[int] = None
    order_type: OrderType = OrderType.walk_in
    payment_terms: PaymentTerms = PaymentTerms.immediate
    notes: Optional[str] = None
    estimated_total: Optional[Decimal] = None
    items: List[OrderItemIn] = Field(default_factory=list)


class StatusChangeIn(BaseModel):
    status: OrderStatus
    reason: Optional[str] = None


class DiscountIn(BaseModel):
    discount: Decimal
    reason: str


class PaymentIn(BaseModel):
    amount: Decimal
    payment_method: PaymentMethod = PaymentMethod.cash
    reference_number: Optional[str] = None
    payment_date: Optional[datetime] = None

    @field_validator("amount")
    @classmethod
    def _amt(cls, v):
        if Decimal(str(v or 0)) <= 0:
            raise ValueError("amount must be > 0")
        return Decimal(str(v))


class ReasonIn(BaseModel):
    reason: Optional[str] = None


class OrderItemOut(OrmOut):
    id: int
    product_id: int
    item_type: Optional[str] = None
    description: Optional[str] = None
    quantity: int
    dimensions: Optional[Dict[str, Any]] = None
    unit_price: Decimal
    line_total: Decimal
    pricing_rule_id: Optional[int] = None
    override_reason: Optional[str] = None


class OrderStatusHistoryOut(OrmOut):
    id: int
    from_status: Optional[str] = None
    to_status: str
    changed_by: Optional[int] = None
    action: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class OrderOut(OrmOut):
    id: int
    order_number: str
    customer_id: Optional[int] = None
    outlet_id: Optional[int] = None
    order_type: OrderType
    status: OrderStatus
    payment_terms: PaymentTerms
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    paid_amount: Decimal
    balance: Decimal
    notes: Optional[str] = None
    created_by: Optional[int] = None
    approved_by: Optional[int] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemOut] = Field(default_factory=list)


class OrderDetailOut(OrderOut):
    status_history: List[OrderStatusHistoryOut] = Field(default_factory=list)


class PaymentOut(OrmOut):
    id: int
    payment_number: str
    order_id: Optional[int] = None
    invoice_id: Optional[int] = None
    customer_id: Optional[int] = None
    amount: Decimal
    payment_method: PaymentMethod
    reference_number: Optional[str] = None
    received_by: Optional[int] = None
    payment_date: datetime
