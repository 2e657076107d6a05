# printshop/models/quotation.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (Column, Integer, String, Numeric, DateTime, Enum,
                        ForeignKey, JSON, Text)
from sqlalchemy.orm import relationship

from printshop.db.base import Base


class QuotationStatus(str, enum.Enum):
    draft = "draft"
    sent = "sent"
    approved = "approved"
    expired = "expired"  # terminal
    converted = "converted"  # terminal


class Quotation(Base):
    __tablename__ = "quotations"

    id = Column(Integer, primary_key=True, index=True)
    quote_number = Column(String(32), unique=True, index=True, nullable=False)
    version = Column(Integer, default=1)

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    outlet_id = Column(Integer, ForeignKey("outlets.id"), nullable=True)

    status = Column(Enum(QuotationStatus, native_enum=False),
                    nullable=False,
                    default=QuotationStatus.draft)
    valid_until = Column(DateTime, nullable=True)

    subtotal = Column(Numeric(12, 2), default=0)
    discount = Column(Numeric(12, 2), default=0)
    tax = Column(Numeric(12, 2), default=0)
    total = Column(Numeric(12, 2), default=0)

    notes = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    # set once on conversion, never cleared
    converted_order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer")
    items = relationship(
        "QuotationItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationItem.id",
    )
    converted_order = relationship("Order")


class QuotationItem(Base):
    __tablename__ = "quotation_items"

    id = Column(Integer, primary_key=True, index=True)
    quotation_id = Column(Integer,
                          ForeignKey("quotations.id", ondelete="CASCADE"),
                          nullable=False,
                          index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    description = Column(String(300), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    dimensions = Column(JSON, nullable=True)
    unit_price = Column(Numeric(12, 2), default=0)
    line_total = Column(Numeric(12, 2), default=0)

    quotation = relationship("Quotation", back_populates="items")
    product = relationship("Product")
