# printshop/services/order_workflow.py
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.orm import Session

from printshop.core.config import settings
from printshop.core.rbac import MANAGER_ROLES
from printshop.db.session import atomic, best_effort
from printshop.models.customer import Customer
from printshop.models.invoice import Invoice, InvoiceStatus, Payment, PaymentMethod
from printshop.models.order import (Order, OrderItem, OrderStatus,
                                    OrderStatusHistory, OrderType, PaymentTerms)
from printshop.models.product import Product, ProductType
from printshop.models.service_job import JobStatus, ServiceJob
from printshop.services import numbering
from printshop.services.collaborators import Collaborators, default_collaborators
from printshop.services.errors import (AuthorizationError, CreditLimitError,
                                       DiscountAuthorizationError,
                                       InvalidTransition, InvariantViolation,
                                       NotFoundError, ValidationError)
from printshop.services.money import D, ZERO, money2, totals_for
from printshop.services.pricing_engine import PricingEngine
from printshop.services.settings_service import tax_rate_percent

logger = logging.getLogger(__name__)

S = OrderStatus

REGULAR_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    S.DRAFT: {S.PENDING_PAYMENT, S.PAID, S.CANCELLED},
    S.PENDING_PAYMENT: {S.PAID, S.IN_PRODUCTION, S.READY, S.CANCELLED},
    S.PAID: {S.IN_PRODUCTION, S.READY, S.RELEASED, S.CANCELLED},
    S.IN_PRODUCTION: {S.READY, S.CANCELLED},
    S.READY: {S.RELEASED, S.PAID, S.CANCELLED},
    S.RELEASED: {S.COMPLETED},
    S.COMPLETED: set(),
    S.CANCELLED: set(),
}

# credit customers on invoice terms skip payment before production/release
CREDIT_INVOICE_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    **REGULAR_TRANSITIONS,
    S.DRAFT: {S.IN_PRODUCTION, S.CANCELLED},
    S.READY: {S.RELEASED, S.CANCELLED},
}

STATUS_ACTIONS = {
    S.DRAFT: "Order created",
    S.PENDING_PAYMENT: "Pay later - awaiting payment",
    S.PAID: "Payment received",
    S.IN_PRODUCTION: "Sent to production",
    S.READY: "Production complete - ready",
    S.RELEASED: "Released to customer",
    S.COMPLETED: "Order completed",
    S.CANCELLED: "Order cancelled",
}

EDITABLE_STATUSES = {S.DRAFT, S.PENDING_PAYMENT}
CANCELLABLE_STATUSES = {S.DRAFT, S.PENDING_PAYMENT, S.PAID}
JOB_DONE_STATUSES = {JobStatus.COMPLETED, JobStatus.CANCELLED}

REQUIRES_APPROVAL_TAG = "[REQUIRES APPROVAL]"
DEFAULT_OVERRIDE_REASON = "Price manually adjusted by staff"


def _enum(cls, value: Any, label: str):
    try:
        return cls(getattr(value, "value", value))
    except ValueError:
        raise ValidationError(f"Unknown {label}: {value}")


def _status(value: Any) -> OrderStatus:
    return _enum(OrderStatus, value, "order status")


def _payment_method(value: Any) -> PaymentMethod:
    return _enum(PaymentMethod, value, "payment method")


def _uid(user: Any) -> Optional[int]:
    return getattr(user, "id", None)


def _has_size(width, height) -> bool:
    return width is not None and height is not None and D(width) > 0 and D(height) > 0


class OrderWorkflow:
    """
    Orders from creation to completion.

    Every public method is one unit of work (see db.session.atomic); the
    order row is locked before it is read-modify-written.
    """

    def __init__(self, db: Session, env: Optional[Collaborators] = None):
        self.db = db
        self.env = env or default_collaborators(db)
        self.pricing = PricingEngine(db, self.env)

    # ------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------
    def _lock_order(self, order_id: int) -> Order:
        order = (self.db.query(Order).filter(Order.id == int(order_id)).
                 with_for_update().populate_existing().first())
        if not order:
            raise NotFoundError("Order", order_id)
        return order

    def _lock_customer(self, customer_id: Optional[int]) -> Optional[Customer]:
        if not customer_id:
            return None
        return (self.db.query(Customer).filter(
            Customer.id == int(customer_id)).with_for_update().populate_existing().first())

    def _invoice_of(self, order: Order, lock: bool = False) -> Optional[Invoice]:
        q = self.db.query(Invoice).filter(Invoice.order_id == order.id)
        if lock:
            q = q.with_for_update().populate_existing()
        return q.first()

    def get_order(self, order_id: int) -> Order:
        order = self.db.get(Order, int(order_id))
        if not order:
            raise NotFoundError("Order", order_id)
        return order

    # ------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------
    def customer_of(self, order: Order) -> Optional[Customer]:
        """None for walk-in orders."""
        if not order.customer_id:
            return None
        return order.customer or self.db.get(Customer, order.customer_id)

    def is_credit_invoice_order(self, order: Order) -> bool:
        if order.order_type != OrderType.invoice:
            return False
        customer = self.customer_of(order)
        return customer is not None and customer.is_credit

    def allowed_transitions(self, order: Order) -> Set[OrderStatus]:
        table = (CREDIT_INVOICE_TRANSITIONS if self.is_credit_invoice_order(order)
                 else REGULAR_TRANSITIONS)
        return table.get(order.status, set())

    def awaiting_approval(self, order: Order) -> bool:
        return order.status == S.DRAFT and REQUIRES_APPROVAL_TAG in (order.notes or "")

    # ------------------------------------------------------------
    # Credit
    # ------------------------------------------------------------
    def has_overdue_invoices(self, customer: Customer) -> bool:
        return (self.db.query(Invoice.id).filter(
            Invoice.customer_id == customer.id,
            Invoice.status == InvoiceStatus.overdue,
            Invoice.balance > 0,
        ).first() is not None)

    def credit_block_reason(self, customer: Customer,
                            order_total: Decimal) -> Optional[str]:
        """Why a credit customer may not take this order on credit, or None."""
        exceeds = D(customer.credit_balance) + D(order_total) > D(customer.credit_limit)
        overdue = self.has_overdue_invoices(customer)
        if not exceeds and not overdue:
            return None
        if overdue:
            return "Customer has overdue invoices"
        return "Customer credit limit exceeded"

    # ------------------------------------------------------------
    # Create
    # ------------------------------------------------------------
    def create_order(self, data: Dict[str, Any], user: Any) -> Order:
        """
        data: customer_id?, outlet_id?, order_type, payment_terms, notes?,
              estimated_total?, items: [{product_id, quantity, width?, height?,
              unit?, unit_price?, override_reason?, description?}]
        """
        order_type = _enum(OrderType, data.get("order_type") or OrderType.walk_in,
                           "order type")
        payment_terms = _enum(PaymentTerms,
                              data.get("payment_terms") or PaymentTerms.immediate,
                              "payment terms")

        with atomic(self.db):
            customer = None
            if data.get("customer_id"):
                customer = self._lock_customer(data["customer_id"])
                if not customer:
                    raise NotFoundError("Customer", data["customer_id"])

            order = Order(
                order_number=numbering.next_number(self.db,
                                                   doc_type=numbering.ORDER,
                                                   now=self.env.clock.now()),
                customer_id=customer.id if customer else None,
                outlet_id=data.get("outlet_id"),
                order_type=order_type,
                status=S.DRAFT,
                payment_terms=payment_terms,
                subtotal=ZERO,
                discount=ZERO,
                tax=ZERO,
                total=ZERO,
                paid_amount=ZERO,
                balance=ZERO,
                notes=data.get("notes"),
                created_by=_uid(user),
                created_at=self.env.clock.now(),
            )
            self.db.add(order)
            self.db.flush()
            self._history(order, None, S.DRAFT, user, STATUS_ACTIONS[S.DRAFT],
                          None)

            for item in data.get("items") or []:
                self._add_item(order, item)
            self.recalculate_totals(order)

            credit_invoice = (order_type == OrderType.invoice
                              and customer is not None and customer.is_credit)

            block_reason = None
            if credit_invoice and payment_terms != PaymentTerms.immediate:
                estimated = (D(data["estimated_total"])
                             if data.get("estimated_total") is not None else D(order.total))
                block_reason = self.credit_block_reason(customer, estimated)
                if block_reason:
                    from printshop.services.approval_workflow import ApprovalWorkflow
                    claimed = ApprovalWorkflow(self.db, self.env).claim_credit_override(
                        customer.id, order.id)
                    if claimed:
                        logger.info("Order %s uses credit override request #%s",
                                    order.order_number, claimed.id)
                        block_reason = None

            if block_reason:
                prefix = f"{order.notes}\n\n" if order.notes else ""
                order.notes = f"{prefix}{REQUIRES_APPROVAL_TAG} {block_reason}"
                self.db.flush()
                logger.info("Order %s held for approval: %s", order.order_number,
                            block_reason)
                return order

            if not credit_invoice:
                self._ensure_invoice(order, InvoiceStatus.issued)

            return order

    # ------------------------------------------------------------
    # Items
    # ------------------------------------------------------------
    def add_item(self, order_id: int, item: Dict[str, Any], user: Any = None) -> OrderItem:
        with atomic(self.db):
            order = self._lock_order(order_id)
            if order.status not in EDITABLE_STATUSES:
                raise InvariantViolation(
                    f"Items cannot be changed on an order in status {order.status.value}")
            line = self._add_item(order, item)
            self.recalculate_totals(order)
            return line

    def _add_item(self, order: Order, item: Dict[str, Any]) -> OrderItem:
        product = self.db.get(Product, int(item.get("product_id") or 0))
        if not product:
            raise NotFoundError("Product", item.get("product_id"))

        given_qty = item.get("quantity")
        quantity = 1 if given_qty is None else int(given_qty)
        if quantity <= 0:
            raise ValidationError("Quantity must be at least 1")
        width, height = item.get("width"), item.get("height")

        quote = self.pricing.calculate(product,
                                       quantity=quantity,
                                       width=width,
                                       height=height,
                                       customer_id=order.customer_id)

        unit_price = quote.unit_price
        line_total = quote.line_total
        rule_id = quote.applied_rule_id
        override_reason = None

        given = item.get("unit_price")
        if given is not None and abs(D(given) - quote.unit_price) > Decimal("0.01"):
            unit_price = money2(given)
            if unit_price < 0:
                raise ValidationError("Unit price cannot be negative")
            if product.type == ProductType.dimension and _has_size(width, height):
                line_total = money2(unit_price * D(width) * D(height) * quantity)
            else:
                line_total = money2(unit_price * quantity)
            rule_id = None
            override_reason = item.get("override_reason") or DEFAULT_OVERRIDE_REASON

        dimensions = None
        if width is not None and height is not None:
            dimensions = {
                "width": float(width),
                "height": float(height),
                "unit": item.get("unit") or "ft",
            }

        line = OrderItem(
            product_id=product.id,
            item_type=product.type.value,
            description=item.get("description") or product.name,
            quantity=quantity,
            dimensions=dimensions,
            unit_price=unit_price,
            line_total=line_total,
            pricing_rule_id=rule_id,
            override_reason=override_reason,
        )
        order.items.append(line)
        self.db.flush()
        return line

    # ------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------
    def recalculate_totals(self, order: Order) -> Order:
        """
        The only place order money is derived:
          subtotal = sum(line_total), tax on (subtotal - discount),
          total = subtotal - discount + tax, balance = total - paid_amount
        """
        subtotal = sum((D(i.line_total) for i in order.items), ZERO)
        t = totals_for(subtotal, order.discount, tax_rate_percent(self.env.config))
        order.subtotal = t["subtotal"]
        order.discount = t["discount"]
        order.tax = t["tax"]
        order.total = t["total"]
        order.paid_amount = money2(order.paid_amount)
        order.balance = money2(t["total"] - order.paid_amount)
        self.db.flush()
        return order

    # ------------------------------------------------------------
    # Status machine
    # ------------------------------------------------------------
    def update_status(self,
                      order_id: int,
                      new_status: Any,
                      user: Any = None,
                      reason: Optional[str] = None) -> Order:
        target = _status(new_status)
        with atomic(self.db):
            order = self._lock_order(order_id)
            self._transition(order, target, user, reason)
            return order

    def _check_transition(self, order: Order, target: OrderStatus) -> None:
        current = order.status
        if target not in self.allowed_transitions(order):
            raise InvalidTransition(current, target)

        if self.awaiting_approval(order) and target != S.CANCELLED:
            raise CreditLimitError(
                "Order exceeds the customer's credit and requires manager approval")

        if current == S.IN_PRODUCTION and target in (S.READY, S.RELEASED,
                                                     S.COMPLETED):
            jobs = (self.db.query(ServiceJob).filter(
                ServiceJob.order_id == order.id).all())
            if any(j.status not in JOB_DONE_STATUSES for j in jobs):
                raise InvariantViolation(
                    "Cannot change order status: Production is not complete. "
                    "All service jobs must be completed or cancelled first.")

        if target == S.RELEASED and D(order.balance) > 0:
            if not (self.is_credit_invoice_order(order) or self._invoice_of(order)):
                raise InvariantViolation(
                    "Cannot release order with outstanding balance. "
                    "Please record payment first or create an invoice.")

    def _transition(self,
                    order: Order,
                    target: OrderStatus,
                    user: Any,
                    reason: Optional[str],
                    action: Optional[str] = None) -> None:
        self._check_transition(order, target)

        previous = order.status
        order.status = target
        self._history(order, previous, target, user, action or STATUS_ACTIONS[target],
                      reason)

        if target == S.IN_PRODUCTION:
            self._start_production(order)

        if target == S.RELEASED:
            self._ensure_invoice(order, InvoiceStatus.draft)
        elif target in (S.PAID, S.PENDING_PAYMENT):
            self._ensure_invoice(order, InvoiceStatus.issued)

        if target == S.READY:
            self.env.notifier.notify_roles(
                ["counter_staff"],
                "order_update",
                "Order Ready for Delivery",
                f"Order #{order.order_number} is ready for delivery",
                {"order_id": order.id},
            )

    def _history(self, order: Order, previous: Optional[OrderStatus],
                 target: OrderStatus, user: Any, action: str,
                 notes: Optional[str]) -> None:
        self.db.add(
            OrderStatusHistory(
                order_id=order.id,
                from_status=previous.value if previous else None,
                to_status=target.value,
                changed_by=_uid(user),
                action=action,
                notes=notes,
                created_at=self.env.clock.now(),
            ))
        self.db.flush()

    def _start_production(self, order: Order) -> None:
        if not order.items:
            logger.warning("Order #%s has no items, skipping service job creation",
                           order.order_number)
            return
        from printshop.services.service_job_workflow import ServiceJobWorkflow

        with best_effort(self.db, f"service jobs for order #{order.order_number}"):
            jobs = ServiceJobWorkflow(self.db, self.env).create_from_order(order)
            logger.info("Created %s service jobs for order #%s", len(jobs),
                        order.order_number)

    def _ensure_invoice(self, order: Order, status: InvoiceStatus) -> None:
        if self._invoice_of(order):
            return
        from printshop.services.invoice_workflow import InvoiceWorkflow

        with best_effort(self.db, f"{status.value} invoice for order #{order.order_number}"):
            InvoiceWorkflow(self.db, self.env).create_from_order(order, status=status)

    # ------------------------------------------------------------
    # Discount
    # ------------------------------------------------------------
    def apply_discount(self, order_id: int, discount: Any, reason: str,
                       user: Any) -> Order:
        amount = money2(discount)
        with atomic(self.db):
            order = self._lock_order(order_id)
            subtotal = D(order.subtotal)

            if amount < 0:
                raise ValidationError("Discount cannot be negative")
            if subtotal <= 0 and amount > 0:
                raise ValidationError("Cannot discount an order with no subtotal")
            if amount > subtotal:
                raise ValidationError("Discount cannot exceed the order subtotal")

            pct = (amount / subtotal * 100) if subtotal > 0 else ZERO
            threshold = D(settings.DISCOUNT_APPROVAL_THRESHOLD)
            if pct > threshold and not self.env.roles.has_role(user, MANAGER_ROLES):
                raise DiscountAuthorizationError(
                    f"Discount above {threshold.normalize()}% requires manager approval")

            old = D(order.discount)
            order.discount = amount
            self.recalculate_totals(order)

            self.env.auditor.record(
                _uid(user),
                "update",
                "orders",
                order.id,
                old_values={"discount": str(old)},
                new_values={"discount": str(amount), "reason": reason},
            )
            return order

    # ------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------
    def record_payment(self,
                       order_id: int,
                       amount: Any,
                       method: Any,
                       user: Any,
                       reference_number: Optional[str] = None,
                       payment_date: Optional[datetime] = None) -> Payment:
        amount = money2(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")
        method = _payment_method(method)

        with atomic(self.db):
            order = self._lock_order(order_id)
            if order.status == S.CANCELLED:
                raise InvariantViolation("Cannot record a payment on a cancelled order")
            if method != PaymentMethod.cash and amount > D(order.balance):
                raise ValidationError(
                    f"Payment amount exceeds order balance of {money2(order.balance)}")

            invoice = self._invoice_of(order, lock=True)
            now = self.env.clock.now()

            payment = Payment(
                payment_number=numbering.next_number(self.db,
                                                     doc_type=numbering.PAYMENT,
                                                     now=now),
                order_id=order.id,
                invoice_id=invoice.id if invoice else None,
                customer_id=order.customer_id,
                amount=amount,
                payment_method=method,
                reference_number=reference_number,
                received_by=_uid(user),
                payment_date=payment_date or now,
                created_at=now,
            )
            self.db.add(payment)

            order.paid_amount = money2(D(order.paid_amount) + amount)
            order.balance = money2(D(order.total) - order.paid_amount)

            if invoice:
                invoice.paid_amount = money2(D(invoice.paid_amount) + amount)
                invoice.balance = money2(D(invoice.total) - invoice.paid_amount)
                invoice.status = (InvoiceStatus.paid if invoice.balance <= 0 else
                                  InvoiceStatus.partial)
                self._release_credit(order.customer_id, amount)

            self.db.flush()

            if self._should_mark_paid(order):
                self._transition(order, S.PAID, user, f"Payment received: {method.value}")

            return payment

    def _should_mark_paid(self, order: Order) -> bool:
        if S.PAID not in self.allowed_transitions(order):
            return False
        if order.status == S.PENDING_PAYMENT:
            return D(order.balance) <= 0
        # READY stays READY; release is always explicit
        if order.status == S.DRAFT:
            return D(order.paid_amount) > 0
        return False

    def _release_credit(self, customer_id: Optional[int], amount: Decimal) -> None:
        customer = self._lock_customer(customer_id)
        if customer is None or not customer.is_credit:
            return
        customer.credit_balance = max(ZERO, money2(D(customer.credit_balance) - amount))
        self.db.flush()

    # ------------------------------------------------------------
    # Cancel / approve / reject
    # ------------------------------------------------------------
    def cancel(self, order_id: int, user: Any, reason: str) -> Order:
        with atomic(self.db):
            order = self._lock_order(order_id)
            if order.status not in CANCELLABLE_STATUSES:
                raise InvariantViolation(
                    f"Cannot cancel order in status {order.status.value}")

            previous = order.status
            order.status = S.CANCELLED
            self._history(order, previous, S.CANCELLED, user,
                          STATUS_ACTIONS[S.CANCELLED], reason)

            from printshop.services.service_job_workflow import ServiceJobWorkflow
            jobs = ServiceJobWorkflow(self.db, self.env)
            for job_id in [j.id for j in order.service_jobs]:
                jobs.cancel(job_id, user, reason)

            self.env.auditor.record(
                _uid(user),
                "cancel",
                "orders",
                order.id,
                old_values={"status": previous.value},
                new_values={"status": S.CANCELLED.value, "reason": reason},
            )
            return order

    def _require_manager(self, user: Any, what: str) -> None:
        if not self.env.roles.has_role(user, MANAGER_ROLES):
            raise AuthorizationError(f"Only managers can {what}")

    def approve_order(self, order_id: int, approver: Any) -> Order:
        """Let a held credit order through despite the credit check."""
        with atomic(self.db):
            self._require_manager(approver, "approve orders")
            order = self._lock_order(order_id)
            if not self.awaiting_approval(order):
                raise InvariantViolation(
                    f"Order {order.order_number} is not awaiting credit approval")

            order.approved_by = _uid(approver)
            # bypasses the transition table: credit-invoice drafts
            # cannot otherwise reach PENDING_PAYMENT
            order.status = S.PENDING_PAYMENT
            self._history(order, S.DRAFT, S.PENDING_PAYMENT, approver,
                          "Order approved (credit limit override)",
                          f"Approved by {getattr(approver, 'name', '')} - Credit limit exceeded")
            return order

    def reject_order(self, order_id: int, rejector: Any,
                     reason: Optional[str] = None) -> Order:
        with atomic(self.db):
            self._require_manager(rejector, "reject orders")
            order = self._lock_order(order_id)
            if order.status != S.DRAFT:
                raise InvariantViolation(
                    f"Only draft orders can be rejected (status {order.status.value})")

            order.approved_by = _uid(rejector)
            order.status = S.CANCELLED
            notes = (f"Rejected: {reason}" if reason else
                     f"Rejected by {getattr(rejector, 'name', '')}")
            self._history(order, S.DRAFT, S.CANCELLED, rejector, "Order rejected", notes)
            return order

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------
    def history(self, order_id: int) -> List[OrderStatusHistory]:
        order = self.get_order(order_id)
        return list(order.status_history)
