from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (Column, Integer, String, DateTime, Enum, ForeignKey,
                        JSON)
from sqlalchemy.orm import relationship

from printshop.db.base import Base


class ApprovalType(str, enum.Enum):
    discount = "discount"
    credit_override = "credit_override"


class ApprovalStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ApprovalRequest(Base):
    """
    Manager sign-off for a discount or a credit-limit override.
    request_data is a snapshot of the numbers at request time.
    """
    __tablename__ = "approval_requests"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(ApprovalType, native_enum=False), nullable=False)
    status = Column(Enum(ApprovalStatus, native_enum=False),
                    nullable=False,
                    default=ApprovalStatus.pending)

    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)

    requested_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"),
                         nullable=True)  # approver or rejector
    approved_at = Column(DateTime, nullable=True)
    approver_notes = Column(String(500), nullable=True)

    request_data = Column(JSON, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order")
    customer = relationship("Customer")
