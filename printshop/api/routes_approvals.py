# printshop/api/routes_approvals.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from printshop.api.deps import get_db, current_user, get_collaborators
from printshop.models.user import User
from printshop.schemas.approvals import (ApprovalOut, ApproveIn, CreditOverrideIn,
                                         DiscountApprovalIn, RejectIn)
from printshop.services.approval_workflow import ApprovalWorkflow
from printshop.services.collaborators import Collaborators
from printshop.utils.resp import created, ok

router = APIRouter(prefix="/approvals", tags=["Approvals"])


@router.get("")
def pending_requests(
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    return ok([ApprovalOut.model_validate(r) for r in ApprovalWorkflow(db, env).pending()])


@router.post("/discount")
def request_discount(
        inp: DiscountApprovalIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    req = ApprovalWorkflow(db, env).request_discount_approval(inp.order_id, inp.discount,
                                                              inp.reason, user)
    return created(ApprovalOut.model_validate(req))


@router.post("/credit-override")
def request_credit_override(
        inp: CreditOverrideIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    req = ApprovalWorkflow(db, env).request_credit_override(inp.customer_id,
                                                            inp.order_total,
                                                            inp.reason,
                                                            user,
                                                            order_id=inp.order_id)
    return created(ApprovalOut.model_validate(req))


@router.post("/{request_id}/approve")
def approve_request(
        request_id: int,
        inp: ApproveIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    req = ApprovalWorkflow(db, env).approve(request_id, user, inp.notes)
    return ok(ApprovalOut.model_validate(req))


@router.post("/{request_id}/reject")
def reject_request(
        request_id: int,
        inp: RejectIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    req = ApprovalWorkflow(db, env).reject(request_id, user, inp.reason)
    return ok(ApprovalOut.model_validate(req))
