# printshop/schemas/invoices.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, Literal, Optional

from pydantic import BaseModel, field_validator

from printshop.models.invoice import InvoiceStatus, PaymentMethod
from printshop.schemas.common import OrmOut


class InvoiceCreateIn(BaseModel):
    order_id: int
    credit_period_days: Optional[int] = None
    status: Literal["draft", "issued"] = "issued"


class ItemOverrideIn(BaseModel):
    unit_price: Optional[Decimal] = None
    discount_type: Optional[Literal["percentage", "fixed"]] = None
    discount_value: Optional[Decimal] = None


class InvoiceDraftUpdateIn(BaseModel):
    # keyed by order item id
    item_overrides: Optional[Dict[str, ItemOverrideIn]] = None
    subtotal: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    tax: Optional[Decimal] = None


class InvoicePaymentIn(BaseModel):
    amount: Decimal
    payment_method: PaymentMethod = PaymentMethod.cash
    reference_number: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def _amt(cls, v):
        if Decimal(str(v or 0)) <= 0:
            raise ValueError("amount must be > 0")
        return Decimal(str(v))


class PurchaseOrderNumberIn(BaseModel):
    purchase_order_number: Optional[str] = None


class InvoiceOut(OrmOut):
    id: int
    invoice_number: str
    purchase_order_number: Optional[str] = None
    order_id: int
    customer_id: Optional[int] = None
    outlet_id: Optional[int] = None
    status: InvoiceStatus
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    paid_amount: Decimal
    balance: Decimal
    item_overrides: Optional[dict] = None
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
