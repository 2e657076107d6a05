# printshop/services/invoice_workflow.py
from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from printshop.core.config import settings
from printshop.db.session import atomic
from printshop.models.customer import Customer
from printshop.models.invoice import Invoice, InvoiceStatus, Payment, PaymentMethod
from printshop.models.order import Order
from printshop.models.service_job import JobStatus, ServiceJob
from printshop.services import numbering
from printshop.services.collaborators import Collaborators, default_collaborators
from printshop.services.errors import (DuplicateInvoiceError, InvariantViolation,
                                       NotFoundError, ValidationError)
from printshop.services.money import D, ZERO, money2, totals_for
from printshop.services.pricing_engine import PricingEngine
from printshop.services.settings_service import tax_rate_percent

logger = logging.getLogger(__name__)

CREATABLE = {InvoiceStatus.draft, InvoiceStatus.issued}
SETTLED = {InvoiceStatus.paid, InvoiceStatus.overdue}


def _uid(user: Any) -> Optional[int]:
    return getattr(user, "id", None)


def _json_safe(override: Dict[str, Any]) -> Dict[str, Any]:
    # item_overrides is a JSON column
    return {k: (float(v) if isinstance(v, Decimal) else v) for k, v in (override or {}).items()}


class InvoiceWorkflow:
    """
    One invoice per order.

    Customer credit moves here: issuing (or approving a draft) adds the
    outstanding amount to credit_balance, payments take it off again.
    Drafts never touch credit.
    """

    def __init__(self, db: Session, env: Optional[Collaborators] = None):
        self.db = db
        self.env = env or default_collaborators(db)

    # ------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------
    def _lock_invoice(self, invoice_id: int) -> Invoice:
        inv = (self.db.query(Invoice).filter(Invoice.id == int(invoice_id)).
               with_for_update().populate_existing().first())
        if not inv:
            raise NotFoundError("Invoice", invoice_id)
        return inv

    def _lock_customer(self, customer_id: Optional[int]) -> Optional[Customer]:
        if not customer_id:
            return None
        return (self.db.query(Customer).filter(
            Customer.id == int(customer_id)).with_for_update().populate_existing().first())

    def get_invoice(self, invoice_id: int) -> Invoice:
        inv = self.db.get(Invoice, int(invoice_id))
        if not inv:
            raise NotFoundError("Invoice", invoice_id)
        return inv

    def invoice_for_order(self, order_id: int) -> Optional[Invoice]:
        return self.db.query(Invoice).filter(Invoice.order_id == int(order_id)).first()

    # ------------------------------------------------------------
    # Create
    # ------------------------------------------------------------
    def due_date_for(self, customer: Optional[Customer],
                     credit_period_days: Optional[int]):
        if credit_period_days is not None:
            days = int(credit_period_days)
        elif customer is not None and customer.is_credit and customer.credit_period_days:
            days = int(customer.credit_period_days)
        else:
            days = settings.DEFAULT_CREDIT_PERIOD_DAYS
        return self.env.clock.now() + timedelta(days=days)

    def _cancelled_item_ids(self, order: Order) -> set:
        rows = (self.db.query(ServiceJob.order_item_id).filter(
            ServiceJob.order_id == order.id,
            ServiceJob.status == JobStatus.CANCELLED,
            ServiceJob.order_item_id.isnot(None),
        ).all())
        return {r[0] for r in rows}

    def _invoice_totals(self, order: Order) -> Dict[str, Decimal]:
        cancelled = self._cancelled_item_ids(order)
        if cancelled:
            # items whose job was cancelled are never delivered, so not billed
            subtotal = sum((D(i.line_total) for i in order.items if i.id not in cancelled),
                           ZERO)
            return totals_for(subtotal, order.discount, tax_rate_percent(self.env.config))

        from printshop.services.order_workflow import OrderWorkflow
        OrderWorkflow(self.db, self.env).recalculate_totals(order)
        return {
            "subtotal": money2(order.subtotal),
            "discount": money2(order.discount),
            "tax": money2(order.tax),
            "total": money2(order.total),
        }

    def create_from_order(self,
                          order: Order,
                          credit_period_days: Optional[int] = None,
                          status: Any = InvoiceStatus.issued) -> Invoice:
        status = InvoiceStatus(getattr(status, "value", status))
        if status not in CREATABLE:
            raise ValidationError("New invoices are either draft or issued")

        with atomic(self.db):
            existing = self.invoice_for_order(order.id)
            if existing:
                raise DuplicateInvoiceError(existing)

            customer = self._lock_customer(order.customer_id)
            now = self.env.clock.now()
            t = self._invoice_totals(order)

            # payments taken on the order before it was invoiced
            paid = min(money2(order.paid_amount), t["total"]) if D(order.paid_amount) > 0 else ZERO
            balance = money2(t["total"] - paid)
            if status == InvoiceStatus.issued and paid > 0 and balance <= 0:
                status = InvoiceStatus.paid

            invoice = Invoice(
                invoice_number=numbering.next_number(self.db,
                                                     doc_type=numbering.INVOICE,
                                                     now=now),
                order_id=order.id,
                customer_id=customer.id if customer else None,
                outlet_id=order.outlet_id,
                status=status,
                subtotal=t["subtotal"],
                discount=t["discount"],
                tax=t["tax"],
                total=t["total"],
                paid_amount=paid,
                balance=balance,
                issue_date=now if status != InvoiceStatus.draft else None,
                due_date=self.due_date_for(customer, credit_period_days),
                created_at=now,
            )
            self.db.add(invoice)
            self.db.flush()

            if status != InvoiceStatus.draft:
                self._charge_credit(customer, balance)

            logger.info("Invoice %s (%s) created for order #%s",
                        invoice.invoice_number, status.value, order.order_number)
            return invoice

    def create_draft_from_order(self, order: Order,
                                credit_period_days: Optional[int] = None) -> Invoice:
        return self.create_from_order(order, credit_period_days, InvoiceStatus.draft)

    def _charge_credit(self, customer: Optional[Customer], amount: Decimal) -> None:
        if customer is None or not customer.is_credit or amount <= 0:
            return
        customer.credit_balance = money2(D(customer.credit_balance) + amount)
        self.db.flush()

    def _release_credit(self, customer: Optional[Customer], amount: Decimal) -> None:
        if customer is None or not customer.is_credit:
            return
        customer.credit_balance = max(ZERO, money2(D(customer.credit_balance) - amount))
        self.db.flush()

    # ------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------
    def record_payment(self,
                       invoice_id: int,
                       amount: Any,
                       method: Any,
                       user: Any,
                       reference_number: Optional[str] = None) -> Payment:
        amount = money2(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")
        try:
            method = PaymentMethod(getattr(method, "value", method))
        except ValueError:
            raise ValidationError(f"Unknown payment method: {method}")

        with atomic(self.db):
            invoice = self._lock_invoice(invoice_id)
            if amount > D(invoice.balance):
                raise ValidationError(
                    f"Payment amount exceeds invoice balance of {money2(invoice.balance)}")

            now = self.env.clock.now()
            payment = Payment(
                payment_number=numbering.next_number(self.db,
                                                     doc_type=numbering.PAYMENT,
                                                     now=now),
                invoice_id=invoice.id,
                order_id=invoice.order_id,
                customer_id=invoice.customer_id,
                amount=amount,
                payment_method=method,
                reference_number=reference_number,
                received_by=_uid(user),
                payment_date=now,
                created_at=now,
            )
            self.db.add(payment)

            invoice.paid_amount = money2(D(invoice.paid_amount) + amount)
            invoice.balance = money2(D(invoice.total) - invoice.paid_amount)
            invoice.status = (InvoiceStatus.paid
                              if invoice.balance <= 0 else InvoiceStatus.partial)

            self._release_credit(self._lock_customer(invoice.customer_id), amount)

            order = (self.db.query(Order).filter(Order.id == invoice.order_id).
                     with_for_update().populate_existing().first())
            if order:
                order.paid_amount = money2(D(order.paid_amount) + amount)
                order.balance = money2(D(order.total) - order.paid_amount)

            self.db.flush()
            return payment

    # ------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------
    def update_draft(self, invoice_id: int, data: Dict[str, Any]) -> Invoice:
        """
        data: item_overrides? {item_id: {unit_price?, discount_type, discount_value}},
              subtotal?, discount?, tax?
        """
        with atomic(self.db):
            invoice = self._lock_invoice(invoice_id)
            if invoice.status != InvoiceStatus.draft:
                raise InvariantViolation("Only draft invoices can be updated.")

            rate = tax_rate_percent(self.env.config)
            overrides = data.get("item_overrides")

            if isinstance(overrides, dict):
                overrides = {str(k): _json_safe(v) for k, v in overrides.items()}
                pricing = PricingEngine(self.db, self.env)
                subtotal = ZERO
                for item in invoice.order.items:
                    o = overrides.get(str(item.id))
                    if not o:
                        subtotal += D(item.line_total)
                        continue
                    unit_price = D(o["unit_price"]) if o.get("unit_price") is not None else D(item.unit_price)
                    dims = item.dimensions or {}
                    line, _ = pricing.line_total(item.product, unit_price,
                                                 int(item.quantity or 1),
                                                 dims.get("width"), dims.get("height"))
                    if o.get("discount_type") and o.get("discount_value") is not None:
                        if o["discount_type"] == "percentage":
                            line -= line * D(o["discount_value"]) / Decimal("100")
                        elif o["discount_type"] == "fixed":
                            line -= D(o["discount_value"])
                        else:
                            raise ValidationError(
                                f"Unknown discount type: {o['discount_type']}")
                    subtotal += line

                discount = data.get("discount")
                discount = D(discount) if discount is not None else D(invoice.discount)
                t = totals_for(subtotal, discount, rate)
                invoice.item_overrides = overrides
            else:
                subtotal = data.get("subtotal")
                subtotal = D(subtotal) if subtotal is not None else D(invoice.subtotal)
                discount = data.get("discount")
                discount = D(discount) if discount is not None else D(invoice.discount)
                t = totals_for(subtotal, discount, rate)
                if data.get("tax") is not None:
                    t["tax"] = money2(data["tax"])
                    t["total"] = money2(t["subtotal"] - t["discount"] + t["tax"])

            if t["subtotal"] < 0 or t["discount"] < 0 or t["tax"] < 0:
                raise ValidationError("Invoice amounts cannot be negative")
            if t["discount"] > t["subtotal"]:
                raise ValidationError("Discount cannot exceed the invoice subtotal")

            invoice.subtotal = t["subtotal"]
            invoice.discount = t["discount"]
            invoice.tax = t["tax"]
            invoice.total = t["total"]
            invoice.balance = money2(t["total"] - D(invoice.paid_amount))
            self.db.flush()
            return invoice

    def approve_draft(self, invoice_id: int) -> Invoice:
        with atomic(self.db):
            invoice = self._lock_invoice(invoice_id)
            if invoice.status != InvoiceStatus.draft:
                raise InvariantViolation("Only draft invoices can be approved.")
            invoice.status = InvoiceStatus.issued
            invoice.issue_date = self.env.clock.now()
            self._charge_credit(self._lock_customer(invoice.customer_id), D(invoice.balance))
            self.db.flush()
            return invoice

    def update_purchase_order_number(self, invoice_id: int,
                                     number: Optional[str]) -> Invoice:
        with atomic(self.db):
            invoice = self._lock_invoice(invoice_id)
            invoice.purchase_order_number = (number or "").strip() or None
            self.db.flush()
            return invoice

    # ------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------
    def check_overdue_invoices(self) -> int:
        """Flag every unpaid invoice past its due date. Returns how many changed."""
        now = self.env.clock.now()
        with atomic(self.db):
            rows = (self.db.query(Invoice).filter(
                Invoice.status.notin_(list(SETTLED)),
                Invoice.due_date.isnot(None),
                Invoice.due_date < now,
            ).with_for_update().all())
            for inv in rows:
                inv.status = InvoiceStatus.overdue
            self.db.flush()
            if rows:
                logger.info("Marked %s invoices overdue", len(rows))
            return len(rows)
