from decimal import Decimal

from printshop.models import ApprovalStatus, CustomerType
from printshop.services.approval_workflow import ApprovalWorkflow
from printshop.services.errors import (AuthorizationError, InvariantViolation,
                                       ValidationError)
from printshop.services.order_workflow import OrderWorkflow

from tests.base import WorkflowTestCase


class ApprovalWorkflowTests(WorkflowTestCase):
    def setUp(self):
        super().setUp()
        self.flyer = self.make_product("Flyer", unit_cost=100)
        self.regular = self.make_customer("Acme Ltd", CustomerType.regular)
        self.small = self.make_customer("Tiny Co", CustomerType.credit, credit_limit=100)
        self.orders = OrderWorkflow(self.db, self.env)
        self.approvals = ApprovalWorkflow(self.db, self.env)

    def place(self, customer, qty, order_type="walk_in", terms="immediate"):
        return self.orders.create_order(
            {
                "customer_id": customer.id,
                "order_type": order_type,
                "payment_terms": terms,
                "items": [{"product_id": self.flyer.id, "quantity": qty}],
            },
            self.counter,
        )

    def test_discount_request_applies_on_approval(self):
        order = self.place(self.regular, qty=10)

        req = self.approvals.request_discount_approval(order.id, 200, "Bulk buyer",
                                                       self.counter)
        self.assertEqual(req.status, ApprovalStatus.pending)
        self.assertEqual(req.request_data["discount"], 200.0)
        self.assertEqual(req.request_data["discount_percentage"], 20.0)
        self.assertEqual(req.request_data["order_subtotal"], 1000.0)
        self.assertEqual(req.request_data["order_total"], 1100.0)
        self.assertEqual([r.id for r in self.approvals.pending()], [req.id])

        with self.assertRaises(AuthorizationError):
            self.approvals.approve(req.id, self.counter)

        req = self.approvals.approve(req.id, self.manager, "ok")
        self.assertEqual(req.status, ApprovalStatus.approved)
        self.assertEqual(req.approved_by, self.manager.id)
        order = self.orders.get_order(order.id)
        self.assertEqual(order.discount, Decimal("200.00"))
        self.assertEqual(order.total, Decimal("880.00"))
        self.assertEqual(self.approvals.pending(), [])

        with self.assertRaises(InvariantViolation):
            self.approvals.reject(req.id, self.manager, "changed my mind")

    def test_rejected_discount_leaves_order_alone(self):
        order = self.place(self.regular, qty=10)
        req = self.approvals.request_discount_approval(order.id, 300, "Please",
                                                       self.counter)

        req = self.approvals.reject(req.id, self.manager, "Too generous")
        self.assertEqual(req.status, ApprovalStatus.rejected)
        self.assertEqual(req.approver_notes, "Too generous")
        self.assertEqual(self.orders.get_order(order.id).discount, Decimal("0"))

    def test_discount_request_validation(self):
        order = self.place(self.regular, qty=1)
        with self.assertRaises(ValidationError):
            self.approvals.request_discount_approval(order.id, 0, "nothing", self.counter)

    def test_credit_override_snapshot(self):
        with self.assertRaises(ValidationError):
            self.approvals.request_credit_override(self.regular.id, 220, "x", self.counter)

        req = self.approvals.request_credit_override(self.small.id, 220, "Trusted",
                                                     self.counter)
        self.assertEqual(req.request_data["credit_limit"], 100.0)
        self.assertEqual(req.request_data["available_credit"], 100.0)
        self.assertEqual(req.request_data["would_exceed_by"], 120.0)
        self.assertEqual(req.request_data["reason"], "Trusted")

    def test_approved_override_is_used_once(self):
        req = self.approvals.request_credit_override(self.small.id, 220, "Trusted",
                                                     self.counter)
        self.assertFalse(self.approvals.has_approved_credit_override(self.small.id))
        self.approvals.approve(req.id, self.manager)
        self.assertTrue(self.approvals.has_approved_credit_override(self.small.id))

        first = self.place(self.small, qty=2, order_type="invoice", terms="credit_30")
        self.assertFalse(self.orders.awaiting_approval(first))
        self.assertEqual(self.reload(req).order_id, first.id)
        self.assertTrue(self.approvals.has_approved_credit_override(self.small.id, first.id))
        self.assertFalse(self.approvals.has_approved_credit_override(self.small.id))

        second = self.place(self.small, qty=2, order_type="invoice", terms="credit_30")
        self.assertTrue(self.orders.awaiting_approval(second))
