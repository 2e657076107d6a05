# printshop/schemas/common.py
from __future__ import annotations

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class ApiError(BaseModel):
    msg: str
    # workflow error class, e.g. "InvalidTransition"
    code: Optional[str] = None


class ApiResponse(BaseModel):
    status: bool
    data: Optional[Any] = None
    error: Optional[ApiError] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class OrmOut(BaseModel):
    # Decimal money serializes as "12.50" in JSON mode
    model_config = ConfigDict(from_attributes=True)
