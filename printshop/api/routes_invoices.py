# printshop/api/routes_invoices.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from printshop.api.deps import get_db, current_user, get_collaborators
from printshop.models.user import User
from printshop.schemas.invoices import (InvoiceCreateIn, InvoiceDraftUpdateIn,
                                        InvoiceOut, InvoicePaymentIn,
                                        PurchaseOrderNumberIn)
from printshop.schemas.orders import PaymentOut
from printshop.services.collaborators import Collaborators
from printshop.services.invoice_workflow import InvoiceWorkflow
from printshop.services.order_workflow import OrderWorkflow
from printshop.utils.resp import created, ok

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("")
def create_from_order(
        inp: InvoiceCreateIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    order = OrderWorkflow(db, env).get_order(inp.order_id)
    invoice = InvoiceWorkflow(db, env).create_from_order(order, inp.credit_period_days,
                                                         inp.status)
    return created(InvoiceOut.model_validate(invoice))


@router.post("/overdue-check")
def check_overdue(
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    return ok({"marked_overdue": InvoiceWorkflow(db, env).check_overdue_invoices()})


@router.get("/{invoice_id}")
def get_invoice(
        invoice_id: int,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    return ok(InvoiceOut.model_validate(InvoiceWorkflow(db, env).get_invoice(invoice_id)))


@router.post("/{invoice_id}/payments")
def record_payment(
        invoice_id: int,
        inp: InvoicePaymentIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    payment = InvoiceWorkflow(db, env).record_payment(invoice_id, inp.amount,
                                                      inp.payment_method, user,
                                                      inp.reference_number)
    return created(PaymentOut.model_validate(payment))


@router.put("/{invoice_id}/draft")
def update_draft(
        invoice_id: int,
        inp: InvoiceDraftUpdateIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    invoice = InvoiceWorkflow(db, env).update_draft(invoice_id,
                                                    inp.model_dump(mode="json", exclude_none=True))
    return ok(InvoiceOut.model_validate(invoice))


@router.post("/{invoice_id}/approve")
def approve_draft(
        invoice_id: int,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    return ok(InvoiceOut.model_validate(InvoiceWorkflow(db, env).approve_draft(invoice_id)))


@router.put("/{invoice_id}/purchase-order")
def update_po_number(
        invoice_id: int,
        inp: PurchaseOrderNumberIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    invoice = InvoiceWorkflow(db, env).update_purchase_order_number(
        invoice_id, inp.purchase_order_number)
    return ok(InvoiceOut.model_validate(invoice))
