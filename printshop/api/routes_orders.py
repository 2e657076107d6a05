# printshop/api/routes_orders.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from printshop.api.deps import get_db, current_user, get_collaborators
from printshop.models.user import User
from printshop.schemas.orders import (DiscountIn, OrderCreateIn, OrderDetailOut,
                                      OrderItemIn, OrderItemOut, OrderOut,
                                      PaymentIn, PaymentOut, ReasonIn,
                                      StatusChangeIn)
from printshop.services.collaborators import Collaborators
from printshop.services.order_workflow import OrderWorkflow
from printshop.utils.resp import created, ok

router = APIRouter(prefix="/orders", tags=["Orders"])


def _wf(db: Session, env: Collaborators) -> OrderWorkflow:
    return OrderWorkflow(db, env)


@router.post("")
def create_order(
        inp: OrderCreateIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    order = _wf(db, env).create_order(inp.model_dump(), user)
    return created(OrderOut.model_validate(order))


@router.get("/{order_id}")
def get_order(
        order_id: int,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    return ok(OrderDetailOut.model_validate(_wf(db, env).get_order(order_id)))


@router.post("/{order_id}/items")
def add_item(
        order_id: int,
        inp: OrderItemIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    item = _wf(db, env).add_item(order_id, inp.model_dump(), user)
    return created(OrderItemOut.model_validate(item))


@router.post("/{order_id}/status")
def update_status(
        order_id: int,
        inp: StatusChangeIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    order = _wf(db, env).update_status(order_id, inp.status, user, inp.reason)
    return ok(OrderOut.model_validate(order))


@router.post("/{order_id}/discount")
def apply_discount(
        order_id: int,
        inp: DiscountIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    order = _wf(db, env).apply_discount(order_id, inp.discount, inp.reason, user)
    return ok(OrderOut.model_validate(order))


@router.post("/{order_id}/payments")
def record_payment(
        order_id: int,
        inp: PaymentIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    payment = _wf(db, env).record_payment(
        order_id,
        inp.amount,
        inp.payment_method,
        user,
        reference_number=inp.reference_number,
        payment_date=inp.payment_date,
    )
    return created(PaymentOut.model_validate(payment))


@router.post("/{order_id}/cancel")
def cancel_order(
        order_id: int,
        inp: ReasonIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    order = _wf(db, env).cancel(order_id, user, inp.reason or "")
    return ok(OrderOut.model_validate(order))


@router.post("/{order_id}/approve")
def approve_order(
        order_id: int,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    return ok(OrderOut.model_validate(_wf(db, env).approve_order(order_id, user)))


@router.post("/{order_id}/reject")
def reject_order(
        order_id: int,
        inp: ReasonIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    order = _wf(db, env).reject_order(order_id, user, inp.reason)
    return ok(OrderOut.model_validate(order))
