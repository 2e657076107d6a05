# printshop/services/approval_workflow.py
from __future__ import annotations

import logging
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from printshop.core.rbac import MANAGER_ROLES
from printshop.db.session import atomic
from printshop.models.approval import ApprovalRequest, ApprovalStatus, ApprovalType
from printshop.models.customer import Customer
from printshop.models.order import Order
from printshop.services.collaborators import Collaborators, default_collaborators
from printshop.services.errors import (AuthorizationError, InvariantViolation,
                                       NotFoundError, ValidationError)
from printshop.services.money import D, money2

logger = logging.getLogger(__name__)


def _uid(user: Any) -> Optional[int]:
    return getattr(user, "id", None)


def _num(x) -> float:
    # request_data is JSON
    return float(money2(x))


class ApprovalWorkflow:
    """Manager sign-off for big discounts and credit-limit overrides."""

    def __init__(self, db: Session, env: Optional[Collaborators] = None):
        self.db = db
        self.env = env or default_collaborators(db)

    def _lock(self, request_id: int) -> ApprovalRequest:
        req = (self.db.query(ApprovalRequest).filter(
            ApprovalRequest.id == int(request_id)).with_for_update().populate_existing().first())
        if not req:
            raise NotFoundError("Approval request", request_id)
        return req

    def get_request(self, request_id: int) -> ApprovalRequest:
        req = self.db.get(ApprovalRequest, int(request_id))
        if not req:
            raise NotFoundError("Approval request", request_id)
        return req

    def pending(self) -> List[ApprovalRequest]:
        return (self.db.query(ApprovalRequest).filter(
            ApprovalRequest.status == ApprovalStatus.pending).order_by(
                ApprovalRequest.created_at.asc(), ApprovalRequest.id.asc()).all())

    # ------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------
    def request_discount_approval(self, order_id: int, discount: Any, reason: str,
                                  user: Any) -> ApprovalRequest:
        amount = money2(discount)
        if amount <= 0:
            raise ValidationError("Discount must be greater than 0")
        with atomic(self.db):
            order = self.db.get(Order, int(order_id))
            if not order:
                raise NotFoundError("Order", order_id)
            subtotal = D(order.subtotal)
            if subtotal <= 0:
                raise ValidationError("Cannot discount an order with no subtotal")

            req = ApprovalRequest(
                type=ApprovalType.discount,
                status=ApprovalStatus.pending,
                order_id=order.id,
                customer_id=order.customer_id,
                requested_by=_uid(user),
                request_data={
                    "discount": _num(amount),
                    "discount_percentage": round(float(amount / subtotal * 100), 2),
                    "order_total": _num(order.total),
                    "order_subtotal": _num(subtotal),
                    "reason": reason,
                },
                created_at=self.env.clock.now(),
            )
            self.db.add(req)
            self.db.flush()
            return req

    def request_credit_override(self,
                                customer_id: int,
                                order_total: Any,
                                reason: str,
                                user: Any,
                                order_id: Optional[int] = None) -> ApprovalRequest:
        with atomic(self.db):
            customer = self.db.get(Customer, int(customer_id))
            if not customer:
                raise NotFoundError("Customer", customer_id)
            if not customer.is_credit:
                raise ValidationError("Credit overrides apply to credit customers only")

            total = money2(order_total)
            balance = money2(customer.credit_balance)
            limit = money2(customer.credit_limit)
            req = ApprovalRequest(
                type=ApprovalType.credit_override,
                status=ApprovalStatus.pending,
                order_id=order_id,
                customer_id=customer.id,
                requested_by=_uid(user),
                request_data={
                    "order_total": _num(total),
                    "current_credit_balance": _num(balance),
                    "credit_limit": _num(limit),
                    "available_credit": _num(limit - balance),
                    "would_exceed_by": _num(balance + total - limit),
                    "reason": reason,
                },
                created_at=self.env.clock.now(),
            )
            self.db.add(req)
            self.db.flush()
            return req

    # ------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------
    def _decide(self, request_id: int, user: Any) -> ApprovalRequest:
        if not self.env.roles.has_role(user, MANAGER_ROLES):
            raise AuthorizationError("Only managers can decide approval requests")
        req = self._lock(request_id)
        if req.status != ApprovalStatus.pending:
            raise InvariantViolation(
                f"Approval request is already {req.status.value}")
        return req

    def approve(self, request_id: int, approver: Any,
                notes: Optional[str] = None) -> ApprovalRequest:
        with atomic(self.db):
            req = self._decide(request_id, approver)
            req.status = ApprovalStatus.approved
            req.approved_by = _uid(approver)
            req.approved_at = self.env.clock.now()
            req.approver_notes = notes
            self.db.flush()

            if req.type == ApprovalType.discount and req.order_id:
                from printshop.services.order_workflow import OrderWorkflow
                data = req.request_data or {}
                OrderWorkflow(self.db, self.env).apply_discount(
                    req.order_id, data.get("discount"),
                    data.get("reason") or "Approved discount", approver)
            # credit overrides have no side effect; orders consult them
            return req

    def reject(self, request_id: int, rejector: Any, reason: str) -> ApprovalRequest:
        with atomic(self.db):
            req = self._decide(request_id, rejector)
            req.status = ApprovalStatus.rejected
            req.approved_by = _uid(rejector)
            req.approved_at = self.env.clock.now()
            req.approver_notes = reason
            self.db.flush()
            return req

    # ------------------------------------------------------------
    # Credit override gate
    # ------------------------------------------------------------
    def _approved_overrides(self, customer_id: int, order_id: Optional[int]):
        q = self.db.query(ApprovalRequest).filter(
            ApprovalRequest.type == ApprovalType.credit_override,
            ApprovalRequest.status == ApprovalStatus.approved,
            ApprovalRequest.customer_id == int(customer_id),
        )
        if order_id is None:
            return q.filter(ApprovalRequest.order_id.is_(None))
        return q.filter(ApprovalRequest.order_id == int(order_id))

    def has_approved_credit_override(self, customer_id: int,
                                     order_id: Optional[int] = None) -> bool:
        """
        True when a manager approved going over the customer's credit.
        Without order_id only overrides not yet tied to an order count.
        """
        return self._approved_overrides(customer_id, order_id).first() is not None

    def claim_credit_override(self, customer_id: int,
                              order_id: int) -> Optional[ApprovalRequest]:
        """Tie the oldest unused approved override to order_id (one use each)."""
        req = (self._approved_overrides(customer_id, None).order_by(
            ApprovalRequest.id.asc()).with_for_update().first())
        if req is None:
            return None
        req.order_id = int(order_id)
        self.db.flush()
        return req
