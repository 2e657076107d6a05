# printshop/schemas/service_jobs.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from printshop.models.service_job import JobPriority, JobStatus
from printshop.schemas.common import OrmOut


class JobStatusIn(BaseModel):
    status: JobStatus
    reason: Optional[str] = None


class JobAssignIn(BaseModel):
    user_id: int


class JobPriorityIn(BaseModel):
    priority: JobPriority


class JobCancelIn(BaseModel):
    reason: str


class CommentIn(BaseModel):
    comment: str

    @field_validator("comment")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("comment is required")
        return v


class ServiceJobOut(OrmOut):
    id: int
    job_number: str
    order_id: int
    order_item_id: Optional[int] = None
    status: JobStatus
    priority: JobPriority
    assigned_to: Optional[int] = None
    rework_count: int = 0
    notes: Optional[str] = None
    last_rejection_reason: Optional[str] = None
    due_date: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class CommentOut(OrmOut):
    id: int
    service_job_id: int
    user_id: int
    comment: str
    created_at: Optional[datetime] = None
