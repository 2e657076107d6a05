# printshop/services/quotation_workflow.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from printshop.core.config import settings
from printshop.core.rbac import MANAGER_ROLES
from printshop.db.session import atomic
from printshop.models.customer import Customer
from printshop.models.order import Order, OrderStatus, OrderType, PaymentTerms
from printshop.models.product import Product
from printshop.models.quotation import Quotation, QuotationItem, QuotationStatus
from printshop.services import numbering
from printshop.services.collaborators import Collaborators, default_collaborators
from printshop.services.errors import (AuthorizationError, InvariantViolation,
                                       NotFoundError, ValidationError)
from printshop.services.money import D, ZERO, money2, totals_for
from printshop.services.pricing_engine import PricingEngine
from printshop.services.settings_service import tax_rate_percent

logger = logging.getLogger(__name__)

Q = QuotationStatus

EDITABLE = {Q.draft, Q.sent}
TERMINAL = {Q.expired, Q.converted}


def _uid(user: Any) -> Optional[int]:
    return getattr(user, "id", None)


def _dimensions(width, height, unit=None) -> Optional[Dict[str, Any]]:
    if width is None or height is None:
        return None
    return {"width": float(width), "height": float(height), "unit": unit or "ft"}


class QuotationWorkflow:
    """Quotes: draft -> sent -> approved -> converted (or expired)."""

    def __init__(self, db: Session, env: Optional[Collaborators] = None):
        self.db = db
        self.env = env or default_collaborators(db)
        self.pricing = PricingEngine(db, self.env)

    def _lock(self, quotation_id: int) -> Quotation:
        q = (self.db.query(Quotation).filter(Quotation.id == int(quotation_id)).
             with_for_update().populate_existing().first())
        if not q:
            raise NotFoundError("Quotation", quotation_id)
        return q

    def _editable(self, q: Quotation) -> None:
        if q.status not in EDITABLE:
            raise InvariantViolation(
                "Only draft and sent quotations can be modified.")

    def _item(self, q: Quotation, item_id: int) -> QuotationItem:
        for item in q.items:
            if item.id == int(item_id):
                return item
        raise NotFoundError("Quotation item", item_id)

    def _product(self, product_id) -> Product:
        product = self.db.get(Product, int(product_id or 0))
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    # ------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------
    def recalculate_totals(self, q: Quotation) -> Quotation:
        subtotal = sum((D(i.line_total) for i in q.items), ZERO)
        t = totals_for(subtotal, q.discount, tax_rate_percent(self.env.config))
        q.subtotal = t["subtotal"]
        q.discount = t["discount"]
        q.tax = t["tax"]
        q.total = t["total"]
        self.db.flush()
        return q

    # ------------------------------------------------------------
    # Create / edit
    # ------------------------------------------------------------
    def create(self, data: Dict[str, Any], user: Any) -> Quotation:
        with atomic(self.db):
            now = self.env.clock.now()
            customer_id = data.get("customer_id")
            if customer_id and not self.db.get(Customer, int(customer_id)):
                raise NotFoundError("Customer", customer_id)

            q = Quotation(
                quote_number=numbering.next_number(self.db,
                                                   doc_type=numbering.QUOTATION,
                                                   now=now),
                customer_id=customer_id or None,
                outlet_id=data.get("outlet_id"),
                status=Q.draft,
                valid_until=data.get("valid_until")
                or now + timedelta(days=settings.QUOTATION_VALID_DAYS),
                subtotal=ZERO,
                discount=ZERO,
                tax=ZERO,
                total=ZERO,
                notes=data.get("notes"),
                created_by=_uid(user),
                created_at=now,
            )
            self.db.add(q)
            self.db.flush()

            for item in data.get("items") or []:
                self._add_item(q, item)
            self.recalculate_totals(q)
            return q

    def _price(self, q: Quotation, product: Product, quantity: int, width, height):
        if quantity <= 0:
            raise ValidationError("Quantity must be at least 1")
        return self.pricing.calculate(product,
                                      quantity=quantity,
                                      width=width,
                                      height=height,
                                      customer_id=q.customer_id)

    def _add_item(self, q: Quotation, data: Dict[str, Any]) -> QuotationItem:
        product = self._product(data.get("product_id"))
        given_qty = data.get("quantity")
        quantity = 1 if given_qty is None else int(given_qty)
        width, height = data.get("width"), data.get("height")
        quote = self._price(q, product, quantity, width, height)
        item = QuotationItem(
            product_id=product.id,
            description=data.get("description") or product.name,
            quantity=quantity,
            dimensions=_dimensions(width, height, data.get("unit")),
            unit_price=quote.unit_price,
            line_total=quote.line_total,
        )
        q.items.append(item)
        self.db.flush()
        return item

    def add_item(self, quotation_id: int, data: Dict[str, Any]) -> QuotationItem:
        with atomic(self.db):
            q = self._lock(quotation_id)
            self._editable(q)
            item = self._add_item(q, data)
            self.recalculate_totals(q)
            return item

    def update_item(self, quotation_id: int, item_id: int,
                    data: Dict[str, Any]) -> QuotationItem:
        with atomic(self.db):
            q = self._lock(quotation_id)
            self._editable(q)
            item = self._item(q, item_id)

            product = self._product(data.get("product_id") or item.product_id)
            given_qty = data.get("quantity")
            quantity = int(item.quantity or 1) if given_qty is None else int(given_qty)
            dims = item.dimensions or {}
            width = data.get("width", dims.get("width"))
            height = data.get("height", dims.get("height"))
            quote = self._price(q, product, quantity, width, height)

            item.product_id = product.id
            item.description = data.get("description") or item.description or product.name
            item.quantity = quantity
            if data.get("width") is not None and data.get("height") is not None:
                item.dimensions = _dimensions(width, height, data.get("unit"))
            item.unit_price = quote.unit_price
            item.line_total = quote.line_total
            self.db.flush()

            self.recalculate_totals(q)
            return item

    def remove_item(self, quotation_id: int, item_id: int) -> Quotation:
        with atomic(self.db):
            q = self._lock(quotation_id)
            self._editable(q)
            item = self._item(q, item_id)
            q.items.remove(item)
            self.db.flush()
            return self.recalculate_totals(q)

    def update(self, quotation_id: int, data: Dict[str, Any]) -> Quotation:
        """Header fields only: customer_id, notes, valid_until."""
        with atomic(self.db):
            q = self._lock(quotation_id)
            self._editable(q)
            if "customer_id" in data:
                cid = data.get("customer_id")
                if cid and not self.db.get(Customer, int(cid)):
                    raise NotFoundError("Customer", cid)
                q.customer_id = cid or None
            if "notes" in data:
                q.notes = data.get("notes")
            if data.get("valid_until") is not None:
                q.valid_until = data["valid_until"]
            self.db.flush()
            return q

    # ------------------------------------------------------------
    # Status
    # ------------------------------------------------------------
    def update_status(self, quotation_id: int, status: Any, user: Any) -> Quotation:
        try:
            target = QuotationStatus(getattr(status, "value", status))
        except ValueError:
            raise ValidationError(f"Unknown quotation status: {status}")

        if target == Q.converted:
            raise InvariantViolation(
                "Quotations are marked converted only by converting them to an order")
        if target == Q.approved and not self.env.roles.has_role(user, MANAGER_ROLES):
            raise AuthorizationError("Only managers can approve quotations")

        with atomic(self.db):
            q = self._lock(quotation_id)
            if q.status in TERMINAL:
                raise InvariantViolation(
                    f"Quotation is {q.status.value} and can no longer change status")
            q.status = target
            q.approved_by = _uid(user) if target == Q.approved else None
            self.db.flush()
            return q

    def expire_quotations(self) -> int:
        now = self.env.clock.now()
        with atomic(self.db):
            rows = (self.db.query(Quotation).filter(
                Quotation.status.notin_(list(TERMINAL)),
                Quotation.valid_until.isnot(None),
                Quotation.valid_until < now,
            ).with_for_update().all())
            for q in rows:
                q.status = Q.expired
            self.db.flush()
            return len(rows)

    # ------------------------------------------------------------
    # Reads (expiry sweep first)
    # ------------------------------------------------------------
    def list_quotations(self,
                        status: Optional[str] = None,
                        customer_id: Optional[int] = None) -> List[Quotation]:
        self.expire_quotations()
        qry = self.db.query(Quotation)
        if status:
            qry = qry.filter(Quotation.status == QuotationStatus(status))
        if customer_id:
            qry = qry.filter(Quotation.customer_id == int(customer_id))
        return qry.order_by(Quotation.created_at.desc(), Quotation.id.desc()).all()

    def get_quotation(self, quotation_id: int) -> Quotation:
        self.expire_quotations()
        q = self.db.get(Quotation, int(quotation_id))
        if not q:
            raise NotFoundError("Quotation", quotation_id)
        return q

    # ------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------
    def _is_past(self, q: Quotation, now: datetime) -> bool:
        return q.valid_until is not None and q.valid_until < now

    def convert_to_order(self,
                         quotation_id: int,
                         user: Any,
                         overrides: Optional[Dict[str, Any]] = None) -> Order:
        overrides = overrides or {}

        # expiry is kept even though the conversion is refused
        with atomic(self.db):
            q = self._lock(quotation_id)
            expired_now = (q.status not in TERMINAL
                           and self._is_past(q, self.env.clock.now()))
            if expired_now:
                q.status = Q.expired
                self.db.flush()
        if expired_now:
            raise InvariantViolation(
                "Quotation has expired and cannot be converted to order")

        with atomic(self.db):
            q = self._lock(quotation_id)
            if q.status == Q.converted:
                raise InvariantViolation("Quotation has already been converted to an order")
            if q.status == Q.expired:
                raise InvariantViolation(
                    "Quotation has expired and cannot be converted to order")
            if q.status != Q.approved:
                raise InvariantViolation(
                    "Quotation must be approved before converting to order")
            if not q.items:
                raise InvariantViolation(
                    "Cannot convert quotation to order: No items found in quotation")

            customer = self.db.get(Customer, q.customer_id) if q.customer_id else None
            order_type = (OrderType.invoice
                          if customer is not None and customer.is_credit else OrderType.walk_in)
            try:
                if overrides.get("order_type"):
                    order_type = OrderType(overrides["order_type"])
                if order_type == OrderType.invoice:
                    payment_terms = PaymentTerms.credit_30
                else:
                    payment_terms = PaymentTerms(overrides.get("payment_terms")
                                                 or PaymentTerms.immediate)
            except ValueError as e:
                raise ValidationError(str(e))

            from printshop.services.order_workflow import OrderWorkflow
            orders = OrderWorkflow(self.db, self.env)

            order = orders.create_order(
                {
                    "customer_id": q.customer_id,
                    "outlet_id": q.outlet_id,
                    "order_type": order_type,
                    "payment_terms": payment_terms,
                    "notes": q.notes,
                    "items": [{
                        "product_id": i.product_id,
                        "quantity": i.quantity,
                        "width": (i.dimensions or {}).get("width"),
                        "height": (i.dimensions or {}).get("height"),
                        "unit": (i.dimensions or {}).get("unit"),
                        "description": i.description,
                    } for i in q.items],
                },
                user,
            )

            if orders.awaiting_approval(order):
                logger.info("Order %s from quotation %s held for credit approval",
                            order.order_number, q.quote_number)
            elif order_type == OrderType.invoice and orders.is_credit_invoice_order(order):
                orders.update_status(
                    order.id, OrderStatus.IN_PRODUCTION, user,
                    "Converted from approved quotation - credit customer")
            else:
                orders.update_status(order.id, OrderStatus.PAID, user,
                                     "Converted from approved quotation - cash customer")
                orders.update_status(order.id, OrderStatus.IN_PRODUCTION, user,
                                     "Converted from approved quotation")

            q.status = Q.converted
            q.converted_order_id = order.id
            self.db.flush()
            return order
