# printshop/api/routes_quotations.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from printshop.api.deps import get_db, current_user, get_collaborators
from printshop.models.quotation import QuotationStatus
from printshop.models.user import User
from printshop.schemas.orders import OrderOut
from printshop.schemas.quotations import (ConvertIn, QuotationCreateIn,
                                          QuotationItemIn, QuotationItemOut,
                                          QuotationItemUpdateIn, QuotationOut,
                                          QuotationStatusIn, QuotationUpdateIn)
from printshop.services.collaborators import Collaborators
from printshop.services.quotation_workflow import QuotationWorkflow
from printshop.utils.resp import created, ok

router = APIRouter(prefix="/quotations", tags=["Quotations"])


@router.get("")
def list_quotations(
        status: Optional[QuotationStatus] = Query(default=None),
        customer_id: Optional[int] = Query(default=None),
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    rows = QuotationWorkflow(db, env).list_quotations(
        status=status.value if status else None, customer_id=customer_id)
    return ok([QuotationOut.model_validate(q) for q in rows])


@router.post("")
def create_quotation(
        inp: QuotationCreateIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    q = QuotationWorkflow(db, env).create(inp.model_dump(), user)
    return created(QuotationOut.model_validate(q))


@router.get("/{quotation_id}")
def get_quotation(
        quotation_id: int,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    return ok(QuotationOut.model_validate(QuotationWorkflow(db, env).get_quotation(quotation_id)))


@router.put("/{quotation_id}")
def update_quotation(
        quotation_id: int,
        inp: QuotationUpdateIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    q = QuotationWorkflow(db, env).update(quotation_id, inp.model_dump(exclude_unset=True))
    return ok(QuotationOut.model_validate(q))


@router.post("/{quotation_id}/items")
def add_item(
        quotation_id: int,
        inp: QuotationItemIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    item = QuotationWorkflow(db, env).add_item(quotation_id, inp.model_dump())
    return created(QuotationItemOut.model_validate(item))


@router.put("/{quotation_id}/items/{item_id}")
def update_item(
        quotation_id: int,
        item_id: int,
        inp: QuotationItemUpdateIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    item = QuotationWorkflow(db, env).update_item(quotation_id, item_id,
                                                  inp.model_dump(exclude_unset=True))
    return ok(QuotationItemOut.model_validate(item))


@router.delete("/{quotation_id}/items/{item_id}")
def remove_item(
        quotation_id: int,
        item_id: int,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    q = QuotationWorkflow(db, env).remove_item(quotation_id, item_id)
    return ok(QuotationOut.model_validate(q))


@router.post("/{quotation_id}/status")
def update_status(
        quotation_id: int,
        inp: QuotationStatusIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    q = QuotationWorkflow(db, env).update_status(quotation_id, inp.status, user)
    return ok(QuotationOut.model_validate(q))


@router.post("/{quotation_id}/convert")
def convert_to_order(
        quotation_id: int,
        inp: Optional[ConvertIn] = Body(default=None),
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    overrides = inp.model_dump(exclude_none=True) if inp else {}
    order = QuotationWorkflow(db, env).convert_to_order(quotation_id, user, overrides)
    return created(OrderOut.model_validate(order))
