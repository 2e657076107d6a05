from datetime import timedelta
from decimal import Decimal

from printshop.models import CustomerType, ProductType, RuleType
from printshop.services.pricing_engine import PricingEngine

from tests.base import NOW, WorkflowTestCase


class PricingEngineTests(WorkflowTestCase):
    def setUp(self):
        super().setUp()
        self.pricing = PricingEngine(self.db, self.env)
        self.customer = self.make_customer("Acme", CustomerType.regular)
        self.other = self.make_customer("Other", CustomerType.regular)

    def test_quantity_tiers(self):
        product = self.make_product("Business cards", unit_cost=12)
        rule = self.make_rule(product, RuleType.quantity_tier, [
            {"min_qty": 1, "max_qty": 9, "price": 10},
            {"min_qty": 10, "max_qty": None, "price": 8},
        ])

        five = self.pricing.calculate(product, quantity=5)
        self.assertEqual(five.unit_price, Decimal("10.00"))
        self.assertEqual(five.line_total, Decimal("50.00"))
        self.assertEqual(five.applied_rule_id, rule.id)

        ten = self.pricing.calculate(product, quantity=10)
        self.assertEqual(ten.unit_price, Decimal("8.00"))
        self.assertEqual(ten.line_total, Decimal("80.00"))

    def test_dimension_product_uses_area(self):
        product = self.make_product("Banner", unit_cost=5, type=ProductType.dimension)
        self.make_rule(product, RuleType.dimension, {"base_price": 5})

        quote = self.pricing.calculate(product, quantity=1, width=2, height=3)
        self.assertEqual(quote.unit_price, Decimal("5.00"))
        self.assertEqual(quote.line_total, Decimal("30.00"))
        self.assertFalse(quote.used_fallback)

    def test_dimension_min_size_does_not_change_total(self):
        product = self.make_product("Sticker", unit_cost=5, type=ProductType.dimension)
        self.make_rule(product, RuleType.dimension, {"base_price": 4, "min_size": 20})

        quote = self.pricing.calculate(product, quantity=2, width=1, height=2)
        self.assertEqual(quote.line_total, Decimal("16.00"))

    def test_dimension_product_without_size_falls_back(self):
        product = self.make_product("Banner", unit_cost=6, type=ProductType.dimension)
        self.make_rule(product, RuleType.dimension, {"base_price": 5})

        with self.assertLogs("printshop.services.pricing_engine", level="WARNING"):
            quote = self.pricing.calculate(product, quantity=2)
        self.assertTrue(quote.used_fallback)
        self.assertIsNone(quote.applied_rule_id)
        self.assertEqual(quote.unit_price, Decimal("6.00"))
        self.assertEqual(quote.line_total, Decimal("12.00"))

    def test_customer_specific_price_beats_lower_priority_rules(self):
        product = self.make_product("Poster", unit_cost=20)
        special = self.make_rule(product, RuleType.customer_specific, {
            "customer_id": self.customer.id,
            "price": 7
        }, priority=10)
        fixed = self.make_rule(product, RuleType.fixed, {"price": 9})

        mine = self.pricing.calculate(product, quantity=1, customer_id=self.customer.id)
        self.assertEqual(mine.unit_price, Decimal("7.00"))
        self.assertEqual(mine.applied_rule_id, special.id)

        theirs = self.pricing.calculate(product, quantity=1, customer_id=self.other.id)
        self.assertEqual(theirs.unit_price, Decimal("9.00"))
        self.assertEqual(theirs.applied_rule_id, fixed.id)

        anonymous = self.pricing.calculate(product, quantity=1)
        self.assertEqual(anonymous.applied_rule_id, fixed.id)

    def test_highest_priority_wins(self):
        product = self.make_product("Poster", unit_cost=20)
        self.make_rule(product, RuleType.fixed, {"price": 11}, priority=1)
        top = self.make_rule(product, RuleType.fixed, {"price": 6}, priority=5)

        quote = self.pricing.calculate(product, quantity=3)
        self.assertEqual(quote.applied_rule_id, top.id)
        self.assertEqual(quote.line_total, Decimal("18.00"))

    def test_rules_outside_validity_window_are_ignored(self):
        product = self.make_product("Calendar", unit_cost=15)
        self.make_rule(product, RuleType.fixed, {"price": 1},
                       valid_until=NOW - timedelta(days=1))
        self.make_rule(product, RuleType.fixed, {"price": 2},
                       valid_from=NOW + timedelta(days=1))

        quote = self.pricing.calculate(product, quantity=1)
        self.assertIsNone(quote.applied_rule_id)
        self.assertEqual(quote.unit_price, Decimal("15.00"))

    def test_no_rules_uses_unit_cost(self):
        product = self.make_product("Flyer", unit_cost="2.50")

        quote = self.pricing.calculate(product, quantity=4)
        self.assertIsNone(quote.applied_rule_id)
        self.assertEqual(quote.line_total, Decimal("10.00"))

    def test_batch_skips_unknown_products(self):
        product = self.make_product("Flyer", unit_cost=3)

        rows = self.pricing.batch_calculate([
            {"product_id": product.id, "quantity": 2},
            {"product_id": 9999, "quantity": 1},
        ])
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["product_id"], product.id)
        self.assertEqual(rows[0]["line_total"], Decimal("6.00"))
        self.assertIsNone(rows[0]["applied_rule"])
