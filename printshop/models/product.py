# printshop/models/product.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (Column, Integer, String, Numeric, Boolean, DateTime,
                        Enum, ForeignKey, Index, JSON)
from sqlalchemy.orm import relationship

from printshop.db.base import Base


class ProductType(str, enum.Enum):
    inventory = "inventory"
    service = "service"
    dimension = "dimension"  # priced per unit area


class RuleType(str, enum.Enum):
    customer_specific = "customer_specific"
    dimension = "dimension"
    quantity_tier = "quantity_tier"
    fixed = "fixed"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(64), unique=True, nullable=True)
    name = Column(String(191), nullable=False)
    description = Column(String(500), nullable=True)

    type = Column(Enum(ProductType, native_enum=False),
                  nullable=False,
                  default=ProductType.inventory)

    # base price; for dimension products this is the price per square unit
    unit_cost = Column(Numeric(12, 2), default=0)
    unit = Column(String(20), nullable=True)  # pcs | sqft | ...

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    pricing_rules = relationship(
        "PricingRule",
        back_populates="product",
        cascade="all, delete-orphan",
    )


class PricingRule(Base):
    """
    One pricing rule of a product. `config` shape depends on rule_type:

      customer_specific: {"customer_id": 7, "price": 12.5}
      dimension:         {"base_price": 5, "min_size": 4}
      quantity_tier:     [{"min_qty": 1, "max_qty": 9, "price": 10}, ...]
      fixed:             {"price": 99}
    """
    __tablename__ = "pricing_rules"
    __table_args__ = (Index("ix_pricing_rules_product_priority", "product_id",
                            "priority"), )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer,
                        ForeignKey("products.id", ondelete="CASCADE"),
                        nullable=False)
    name = Column(String(120), nullable=True)
    rule_type = Column(Enum(RuleType, native_enum=False), nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    config = Column(JSON, nullable=True)

    valid_from = Column(DateTime, nullable=True)
    valid_until = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="pricing_rules")
