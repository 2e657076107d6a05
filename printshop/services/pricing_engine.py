# printshop/services/pricing_engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from printshop.models.product import PricingRule, Product, ProductType, RuleType
from printshop.services.collaborators import Collaborators, default_collaborators
from printshop.services.money import D, money2

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceQuote:
    unit_price: Decimal
    line_total: Decimal
    applied_rule_id: Optional[int] = None
    # dimension product priced without width/height
    used_fallback: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "unit_price": self.unit_price,
            "line_total": self.line_total,
            "applied_rule": self.applied_rule_id,
            "used_fallback": self.used_fallback,
        }


def _has_size(width, height) -> bool:
    return bool(width) and bool(height) and D(width) > 0 and D(height) > 0


# ============================================================
# Rule resolvers: return a unit price or None (= rule does not apply)
# ============================================================
def _customer_specific(config: Any, customer_id: Optional[int]) -> Optional[Decimal]:
    if not customer_id or not isinstance(config, dict):
        return None
    if "customer_id" not in config or str(config["customer_id"]) != str(customer_id):
        return None
    # percentage deals need a base price we don't have here
    if "discount_pct" in config:
        return None
    if config.get("price") is None:
        return None
    return D(config["price"])


def _dimension(config: Any, width, height) -> Optional[Decimal]:
    if not _has_size(width, height):
        return None
    config = config if isinstance(config, dict) else {}
    base_price = D(config.get("base_price", 0))
    min_size = D(config.get("min_size", 0))

    area = D(width) * D(height)
    if area < min_size:
        area = min_size
    # the floored area is not applied: the rule yields a per-area price
    return base_price


def _quantity_tier(config: Any, quantity: int) -> Optional[Decimal]:
    if not isinstance(config, list):
        return None
    for tier in config:
        if not isinstance(tier, dict):
            continue
        min_qty = tier.get("min_qty")
        max_qty = tier.get("max_qty")
        lo = int(min_qty) if min_qty is not None else 0
        if quantity < lo:
            continue
        if max_qty is not None and quantity > int(max_qty):
            continue
        if tier.get("price") is None:
            return None
        return D(tier["price"])
    return None


def _fixed(config: Any) -> Optional[Decimal]:
    if not isinstance(config, dict) or config.get("price") is None:
        return None
    return D(config["price"])


class PricingEngine:
    """
    Picks the unit price of a product for a quantity / size / customer.

    Rules valid "now" are walked by priority, highest first; the first rule
    that yields a price wins. No match falls back to product.unit_cost.
    """

    def __init__(self, db: Session, env: Optional[Collaborators] = None):
        self.db = db
        self.env = env or default_collaborators(db)

    def active_rules(self, product_id: int) -> List[PricingRule]:
        now = self.env.clock.now()
        return (self.db.query(PricingRule).filter(
            PricingRule.product_id == int(product_id),
            or_(PricingRule.valid_from.is_(None), PricingRule.valid_from <= now),
            or_(PricingRule.valid_until.is_(None),
                PricingRule.valid_until >= now),
        ).order_by(PricingRule.priority.desc(), PricingRule.id.asc()).all())

    def apply_rule(self, rule: PricingRule, *, quantity: int, width=None,
                   height=None, customer_id: Optional[int] = None) -> Optional[Decimal]:
        rt = rule.rule_type
        if rt == RuleType.customer_specific:
            return _customer_specific(rule.config, customer_id)
        if rt == RuleType.dimension:
            return _dimension(rule.config, width, height)
        if rt == RuleType.quantity_tier:
            return _quantity_tier(rule.config, quantity)
        if rt == RuleType.fixed:
            return _fixed(rule.config)
        return None

    def line_total(self, product: Product, unit_price, quantity: int, width=None,
                   height=None):
        """Returns (line_total, used_fallback)."""
        unit_price = D(unit_price)
        qty = D(quantity)
        if product.type == ProductType.dimension:
            if _has_size(width, height):
                return unit_price * D(width) * D(height) * qty, False
            logger.warning(
                "Dimension product %s priced without width/height, using unit_price * quantity",
                product.id)
            return unit_price * qty, True
        return unit_price * qty, False

    def calculate(self,
                  product: Product,
                  *,
                  quantity: int = 1,
                  width=None,
                  height=None,
                  customer_id: Optional[int] = None) -> PriceQuote:
        quantity = int(quantity or 1)

        unit_price = D(product.unit_cost)
        applied_rule_id = None
        for rule in self.active_rules(product.id):
            price = self.apply_rule(rule,
                                    quantity=quantity,
                                    width=width,
                                    height=height,
                                    customer_id=customer_id)
            if price is not None:
                unit_price = price
                applied_rule_id = rule.id
                break

        total, fallback = self.line_total(product, unit_price, quantity, width,
                                          height)
        return PriceQuote(
            unit_price=money2(unit_price),
            line_total=money2(total),
            applied_rule_id=applied_rule_id,
            used_fallback=fallback,
        )

    def batch_calculate(self, items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        results: List[Dict[str, Any]] = []
        for item in items:
            product = self.db.get(Product, int(item.get("product_id") or 0))
            if not product:
                continue
            quote = self.calculate(product,
                                   quantity=item.get("quantity") or 1,
                                   width=item.get("width"),
                                   height=item.get("height"),
                                   customer_id=item.get("customer_id"))
            results.append({"product_id": product.id, **quote.as_dict()})
        return results
