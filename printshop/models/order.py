# printshop/models/order.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (Column, Integer, String, Numeric, DateTime, Enum,
                        ForeignKey, Index, JSON, Text)
from sqlalchemy.orm import relationship

from printshop.db.base import Base


class OrderStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"
    IN_PRODUCTION = "IN_PRODUCTION"
    READY = "READY"
    RELEASED = "RELEASED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class OrderType(str, enum.Enum):
    walk_in = "walk_in"
    quotation = "quotation"
    invoice = "invoice"


class PaymentTerms(str, enum.Enum):
    immediate = "immediate"
    credit_7 = "credit_7"
    credit_15 = "credit_15"
    credit_30 = "credit_30"
    credit_60 = "credit_60"


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (Index("ix_orders_customer_status", "customer_id",
                            "status"), )

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), unique=True, index=True, nullable=False)

    # walk-in orders have no customer
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    outlet_id = Column(Integer, ForeignKey("outlets.id"), nullable=True)

    order_type = Column(Enum(OrderType, native_enum=False),
                        nullable=False,
                        default=OrderType.walk_in)
    status = Column(Enum(OrderStatus, native_enum=False),
                    nullable=False,
                    default=OrderStatus.DRAFT)
    payment_terms = Column(Enum(PaymentTerms, native_enum=False),
                           nullable=False,
                           default=PaymentTerms.immediate)

    # Totals (see OrderWorkflow.recalculate_totals)
    subtotal = Column(Numeric(12, 2), default=0)
    discount = Column(Numeric(12, 2), default=0)
    tax = Column(Numeric(12, 2), default=0)
    total = Column(Numeric(12, 2), default=0)
    paid_amount = Column(Numeric(12, 2), default=0)
    balance = Column(Numeric(12, 2), default=0)

    notes = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    service_jobs = relationship("ServiceJob",
                                back_populates="order",
                                order_by="ServiceJob.id")
    invoice = relationship("Invoice", back_populates="order", uselist=False)
    payments = relationship("Payment",
                            back_populates="order",
                            order_by="Payment.id")
    status_history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.id",
    )


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (Index("ix_order_items_order", "order_id"), )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer,
                      ForeignKey("orders.id", ondelete="CASCADE"),
                      nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    item_type = Column(String(20), nullable=True)  # copy of product.type
    description = Column(String(300), nullable=True)

    quantity = Column(Integer, nullable=False, default=1)
    # {"width": 2, "height": 3, "unit": "ft"}
    dimensions = Column(JSON, nullable=True)

    unit_price = Column(Numeric(12, 2), default=0)
    line_total = Column(Numeric(12, 2), default=0)

    # cleared when staff override the engine price
    pricing_rule_id = Column(Integer,
                             ForeignKey("pricing_rules.id", ondelete="SET NULL"),
                             nullable=True)
    override_reason = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")


class OrderStatusHistory(Base):
    """Append-only trail of order status changes."""
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer,
                      ForeignKey("orders.id", ondelete="CASCADE"),
                      nullable=False,
                      index=True)
    from_status = Column(String(32), nullable=True)
    to_status = Column(String(32), nullable=False)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(120), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="status_history")
