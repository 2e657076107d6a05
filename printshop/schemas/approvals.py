# printshop/schemas/approvals.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel

from printshop.models.approval import ApprovalStatus, ApprovalType
from printshop.schemas.common import OrmOut


class DiscountApprovalIn(BaseModel):
    order_id: int
    discount: Decimal
    reason: str


class CreditOverrideIn(BaseModel):
    customer_id: int
    order_total: Decimal
    reason: str
    order_id: Optional[int] = None


class ApproveIn(BaseModel):
    notes: Optional[str] = None


class RejectIn(BaseModel):
    reason: str


class ApprovalOut(OrmOut):
    id: int
    type: ApprovalType
    status: ApprovalStatus
    order_id: Optional[int] = None
    customer_id: Optional[int] = None
    requested_by: Optional[int] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    approver_notes: Optional[str] = None
    request_data: Dict[str, Any]
