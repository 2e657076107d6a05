from datetime import timedelta
from decimal import Decimal

from printshop.models import (CustomerType, Invoice, InvoiceStatus, OrderStatus,
                              OrderType, PaymentTerms, QuotationStatus, ServiceJob)
from printshop.services.errors import (AuthorizationError, InvariantViolation,
                                       NotFoundError, ValidationError)
from printshop.services.order_workflow import OrderWorkflow
from printshop.services.quotation_workflow import QuotationWorkflow

from tests.base import NOW, WorkflowTestCase


class QuotationWorkflowTests(WorkflowTestCase):
    def setUp(self):
        super().setUp()
        self.flyer = self.make_product("Flyer", unit_cost=100)
        self.credit = self.make_customer("Beta Corp", CustomerType.credit,
                                         credit_limit=5000)
        self.regular = self.make_customer("Acme Ltd", CustomerType.regular)
        self.quotes = QuotationWorkflow(self.db, self.env)
        self.orders = OrderWorkflow(self.db, self.env)

    def quote(self, customer, qty=3):
        return self.quotes.create(
            {
                "customer_id": customer.id if customer else None,
                "notes": "Spring campaign",
                "items": [{"product_id": self.flyer.id, "quantity": qty}],
            },
            self.counter,
        )

    def approved(self, customer, qty=3):
        q = self.quote(customer, qty)
        return self.quotes.update_status(q.id, QuotationStatus.approved, self.manager)

    def test_create_prices_items(self):
        q = self.quote(self.regular)

        self.assertEqual(q.quote_number, "QUO-2026-0001")
        self.assertEqual(q.status, QuotationStatus.draft)
        self.assertEqual(q.valid_until, NOW + timedelta(days=30))
        self.assertEqual(q.subtotal, Decimal("300.00"))
        self.assertEqual(q.tax, Decimal("30.00"))
        self.assertEqual(q.total, Decimal("330.00"))

        with self.assertRaises(NotFoundError):
            self.quotes.create({"customer_id": 999}, self.counter)

    def test_item_edits_recalculate(self):
        q = self.quote(self.regular)
        extra = self.quotes.add_item(q.id, {"product_id": self.flyer.id, "quantity": 1})
        self.assertEqual(self.reload(q).subtotal, Decimal("400.00"))

        self.quotes.update_item(q.id, extra.id, {"quantity": 2})
        self.assertEqual(self.reload(q).subtotal, Decimal("500.00"))

        q = self.quotes.remove_item(q.id, extra.id)
        self.assertEqual(q.subtotal, Decimal("300.00"))
        self.assertEqual(len(q.items), 1)

    def test_zero_quantity_is_rejected(self):
        q = self.quote(self.regular)
        item_id = q.items[0].id

        with self.assertRaises(ValidationError):
            self.quotes.add_item(q.id, {"product_id": self.flyer.id, "quantity": 0})
        with self.assertRaises(ValidationError):
            self.quotes.update_item(q.id, item_id, {"quantity": 0})
        with self.assertRaises(ValidationError):
            self.quote(self.regular, qty=0)

        q = self.reload(q)
        self.assertEqual(len(q.items), 1)
        self.assertEqual(q.items[0].quantity, 3)
        self.assertEqual(q.subtotal, Decimal("300.00"))

    def test_header_update(self):
        q = self.quote(None)
        q = self.quotes.update(q.id, {"customer_id": self.regular.id, "notes": "Rush"})
        self.assertEqual(q.customer_id, self.regular.id)
        self.assertEqual(q.notes, "Rush")

    def test_only_managers_approve(self):
        q = self.quote(self.regular)
        with self.assertRaises(AuthorizationError):
            self.quotes.update_status(q.id, QuotationStatus.approved, self.counter)

        q = self.quotes.update_status(q.id, QuotationStatus.approved, self.manager)
        self.assertEqual(q.approved_by, self.manager.id)
        with self.assertRaises(InvariantViolation):
            self.quotes.update_status(q.id, QuotationStatus.converted, self.manager)
        with self.assertRaises(InvariantViolation):
            self.quotes.add_item(q.id, {"product_id": self.flyer.id})

    def test_credit_customer_conversion(self):
        q = self.approved(self.credit)

        order = self.quotes.convert_to_order(q.id, self.counter)
        self.assertEqual(order.order_type, OrderType.invoice)
        self.assertEqual(order.payment_terms, PaymentTerms.credit_30)
        self.assertEqual(order.status, OrderStatus.IN_PRODUCTION)
        self.assertEqual(order.notes, "Spring campaign")
        self.assertEqual(
            self.db.query(ServiceJob).filter(ServiceJob.order_id == order.id).count(), 1)
        self.assertIsNone(self.db.query(Invoice).filter(Invoice.order_id == order.id).first())

        q = self.reload(q)
        self.assertEqual(q.status, QuotationStatus.converted)
        self.assertEqual(q.converted_order_id, order.id)

        with self.assertRaises(InvariantViolation):
            self.quotes.convert_to_order(q.id, self.counter)

    def test_cash_customer_conversion(self):
        q = self.approved(self.regular)

        order = self.quotes.convert_to_order(q.id, self.counter)
        self.assertEqual(order.order_type, OrderType.walk_in)
        self.assertEqual(order.payment_terms, PaymentTerms.immediate)
        self.assertEqual(order.status, OrderStatus.IN_PRODUCTION)
        paid = [h for h in self.orders.history(order.id) if h.to_status == "PAID"]
        self.assertEqual(paid[0].notes, "Converted from approved quotation - cash customer")
        invoice = self.db.query(Invoice).filter(Invoice.order_id == order.id).one()
        self.assertEqual(invoice.status, InvoiceStatus.issued)

    def test_conversion_needs_approval_and_items(self):
        q = self.quote(self.regular)
        with self.assertRaises(InvariantViolation):
            self.quotes.convert_to_order(q.id, self.counter)

        empty = self.quotes.create({"customer_id": self.regular.id}, self.counter)
        self.quotes.update_status(empty.id, QuotationStatus.approved, self.manager)
        with self.assertRaises(InvariantViolation):
            self.quotes.convert_to_order(empty.id, self.counter)

    def test_expired_quotation_is_marked_on_conversion(self):
        q = self.approved(self.regular)
        self.clock.advance(days=31)

        with self.assertRaises(InvariantViolation):
            self.quotes.convert_to_order(q.id, self.counter)
        self.assertEqual(self.reload(q).status, QuotationStatus.expired)

    def test_reads_expire_stale_quotations(self):
        first = self.quote(self.regular)
        second = self.quote(self.credit)
        self.clock.advance(days=31)

        rows = self.quotes.list_quotations(status="expired")
        self.assertEqual({q.id for q in rows}, {first.id, second.id})
        self.assertEqual(self.quotes.list_quotations(customer_id=self.credit.id)[0].id,
                         second.id)
        with self.assertRaises(InvariantViolation):
            self.quotes.update_status(first.id, QuotationStatus.sent, self.manager)

    def test_over_limit_conversion_is_held(self):
        small = self.make_customer("Tiny Co", CustomerType.credit, credit_limit=100)
        q = self.approved(small)

        order = self.quotes.convert_to_order(q.id, self.counter)
        self.assertEqual(order.status, OrderStatus.DRAFT)
        self.assertTrue(self.orders.awaiting_approval(order))
        self.assertEqual(self.reload(q).converted_order_id, order.id)
