# printshop/api/routes_pricing.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from printshop.api.deps import get_db, current_user, get_collaborators
from printshop.models.product import Product
from printshop.models.user import User
from printshop.schemas.pricing import BatchPriceIn, PriceQuoteOut, PriceRequestIn
from printshop.services.collaborators import Collaborators
from printshop.services.pricing_engine import PricingEngine
from printshop.utils.resp import ok

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.post("/calculate")
def calculate_price(
        inp: PriceRequestIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    product = db.get(Product, int(inp.product_id))
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    quote = PricingEngine(db, env).calculate(product,
                                             quantity=inp.quantity,
                                             width=inp.width,
                                             height=inp.height,
                                             customer_id=inp.customer_id)
    return ok(PriceQuoteOut(product_id=product.id, **quote.as_dict()))


@router.post("/batch")
def batch_calculate(
        inp: BatchPriceIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    rows = PricingEngine(db, env).batch_calculate([i.model_dump() for i in inp.items])
    return ok([PriceQuoteOut(**r) for r in rows])
