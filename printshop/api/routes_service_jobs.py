# printshop/api/routes_service_jobs.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from printshop.api.deps import get_db, current_user, get_collaborators
from printshop.models.service_job import JobStatus
from printshop.models.user import User
from printshop.schemas.service_jobs import (CommentIn, CommentOut, JobAssignIn,
                                            JobCancelIn, JobPriorityIn,
                                            JobStatusIn, ServiceJobOut)
from printshop.services.collaborators import Collaborators
from printshop.services.service_job_workflow import ServiceJobWorkflow
from printshop.utils.resp import created, ok

router = APIRouter(prefix="/service-jobs", tags=["Service Jobs"])


@router.get("")
def job_queue(
        status: JobStatus = Query(default=JobStatus.PENDING),
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    jobs = ServiceJobWorkflow(db, env).queue(status)
    return ok([ServiceJobOut.model_validate(j) for j in jobs])


@router.post("/overdue-check")
def check_overdue(
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    return ok({"overdue_jobs": ServiceJobWorkflow(db, env).check_overdue_jobs()})


@router.get("/{job_id}")
def get_job(
        job_id: int,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    return ok(ServiceJobOut.model_validate(ServiceJobWorkflow(db, env).get_job(job_id)))


@router.post("/{job_id}/assign")
def assign_job(
        job_id: int,
        inp: JobAssignIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    assignee = db.get(User, int(inp.user_id))
    if not assignee or not assignee.is_active:
        raise HTTPException(status_code=404, detail="Assignee not found")
    job = ServiceJobWorkflow(db, env).assign(job_id, assignee, user)
    return ok(ServiceJobOut.model_validate(job))


@router.post("/{job_id}/status")
def update_status(
        job_id: int,
        inp: JobStatusIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    job = ServiceJobWorkflow(db, env).update_status(job_id, inp.status, user, inp.reason)
    return ok(ServiceJobOut.model_validate(job))


@router.put("/{job_id}/priority")
def update_priority(
        job_id: int,
        inp: JobPriorityIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    job = ServiceJobWorkflow(db, env).update_priority(job_id, inp.priority)
    return ok(ServiceJobOut.model_validate(job))


@router.get("/{job_id}/comments")
def list_comments(
        job_id: int,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    rows = ServiceJobWorkflow(db, env).list_comments(job_id)
    return ok([CommentOut.model_validate(c) for c in rows])


@router.post("/{job_id}/comments")
def add_comment(
        job_id: int,
        inp: CommentIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    row = ServiceJobWorkflow(db, env).add_comment(job_id, user, inp.comment)
    return created(CommentOut.model_validate(row))


@router.post("/{job_id}/cancel")
def cancel_job(
        job_id: int,
        inp: JobCancelIn,
        db: Session = Depends(get_db),
        env: Collaborators = Depends(get_collaborators),
        user: User = Depends(current_user),
):
    ServiceJobWorkflow(db, env).cancel(job_id, user, inp.reason)
    return ok({"deleted": job_id})
