# printshop/models/invoice.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (Column, Integer, String, Numeric, DateTime, Enum,
                        ForeignKey, Index, JSON, UniqueConstraint)
from sqlalchemy.orm import relationship

from printshop.db.base import Base


class InvoiceStatus(str, enum.Enum):
    draft = "draft"
    issued = "issued"
    partial = "partial"
    paid = "paid"
    overdue = "overdue"


class PaymentMethod(str, enum.Enum):
    cash = "cash"
    card = "card"
    bank_transfer = "bank_transfer"
    credit = "credit"


class Invoice(Base):
    """
    Customer invoice for one order.

    Lifecycle:
      draft   -> issued (approve_draft)
      issued  -> partial / paid (payments)
      any unpaid past due_date -> overdue
    """
    __tablename__ = "invoices"
    __table_args__ = (
        # at most one invoice per order
        UniqueConstraint("order_id", name="uq_invoices_order"),
        Index("ix_invoices_status_due", "status", "due_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(32), unique=True, index=True, nullable=False)
    purchase_order_number = Column(String(255), nullable=True)

    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    outlet_id = Column(Integer, ForeignKey("outlets.id"), nullable=True)

    status = Column(Enum(InvoiceStatus, native_enum=False),
                    nullable=False,
                    default=InvoiceStatus.draft)

    subtotal = Column(Numeric(12, 2), default=0)
    discount = Column(Numeric(12, 2), default=0)
    tax = Column(Numeric(12, 2), default=0)
    total = Column(Numeric(12, 2), default=0)
    paid_amount = Column(Numeric(12, 2), default=0)
    balance = Column(Numeric(12, 2), default=0)

    # {"<order_item_id>": {"unit_price": .., "discount_type": "percentage"|"fixed", "discount_value": ..}}
    item_overrides = Column(JSON, nullable=True)

    issue_date = Column(DateTime, nullable=True)  # set only once issued
    due_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("Order", back_populates="invoice")
    customer = relationship("Customer", back_populates="invoices")
    payments = relationship("Payment",
                            back_populates="invoice",
                            order_by="Payment.id")


class Payment(Base):
    """Money received. Rows are never updated once written."""
    __tablename__ = "payments"
    __table_args__ = (
        Index("ix_payments_order", "order_id"),
        Index("ix_payments_invoice", "invoice_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    payment_number = Column(String(32), unique=True, index=True, nullable=False)

    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(Enum(PaymentMethod, native_enum=False),
                            nullable=False)
    reference_number = Column(String(255), nullable=True)

    received_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    payment_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="payments")
    invoice = relationship("Invoice", back_populates="payments")
