# printshop/models/customer.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (Column, Integer, String, Numeric, Boolean, DateTime,
                        Enum, Text)
from sqlalchemy.orm import relationship

from printshop.db.base import Base


class CustomerType(str, enum.Enum):
    walk_in = "walk_in"
    regular = "regular"
    credit = "credit"


class Customer(Base):
    """
    Shop customer.
    credit_balance is what the customer currently owes on issued invoices;
    it only moves on invoice issue/approval and on payments, never below 0.
    """
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(191), nullable=False)
    email = Column(String(191), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(255), nullable=True)
    tax_id = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)

    type = Column(Enum(CustomerType, native_enum=False),
                  nullable=False,
                  default=CustomerType.regular)

    credit_limit = Column(Numeric(12, 2), default=0)
    credit_balance = Column(Numeric(12, 2), default=0)
    credit_period_days = Column(Integer, default=30)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    orders = relationship("Order", back_populates="customer")
    invoices = relationship("Invoice", back_populates="customer")

    @property
    def is_credit(self) -> bool:
        return self.type == CustomerType.credit
