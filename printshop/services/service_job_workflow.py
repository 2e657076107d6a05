# printshop/services/service_job_workflow.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import case, or_
from sqlalchemy.orm import Session

from printshop.core.config import settings
from printshop.core.rbac import MANAGER_ROLES
from printshop.db.session import atomic, best_effort
from printshop.models.order import Order, OrderItem, OrderStatus
from printshop.models.service_job import (JobPriority, JobStatus, ServiceJob,
                                          ServiceJobComment,
                                          ServiceStatusHistory)
from printshop.models.user import Role, User
from printshop.services import numbering
from printshop.services.collaborators import Collaborators, default_collaborators
from printshop.services.errors import (InvalidTransition, NotFoundError,
                                       ValidationError)

logger = logging.getLogger(__name__)

J = JobStatus

JOB_TRANSITIONS: Dict[JobStatus, Set[JobStatus]] = {
    J.PENDING: {J.ACCEPTED, J.CANCELLED},
    J.ACCEPTED: {J.IN_PROGRESS},
    J.IN_PROGRESS: {J.QA_REVIEW, J.ACCEPTED, J.ON_HOLD},
    J.ON_HOLD: {J.IN_PROGRESS},
    J.QA_REVIEW: {J.COMPLETED, J.REJECTED, J.IN_PROGRESS},
    J.REJECTED: {J.IN_PROGRESS},
    J.CANCELLED: set(),
    J.COMPLETED: {J.DELIVERED},
    J.DELIVERED: set(),
}

DONE = {J.COMPLETED, J.CANCELLED}
NOTIFY_CREATOR_ON = {J.COMPLETED, J.ON_HOLD, J.REJECTED}
MAX_REWORKS = 2
OVERDUE_GRACE = timedelta(hours=24)

PRIORITY_RANK = {
    JobPriority.urgent: 0,
    JobPriority.high: 1,
    JobPriority.normal: 2,
    JobPriority.low: 3,
}


def _uid(user: Any) -> Optional[int]:
    return getattr(user, "id", None)


def _job_status(value: Any) -> JobStatus:
    try:
        return JobStatus(getattr(value, "value", value))
    except ValueError:
        raise ValidationError(f"Unknown job status: {value}")


class ServiceJobWorkflow:
    """Production jobs, one per order item."""

    def __init__(self, db: Session, env: Optional[Collaborators] = None):
        self.db = db
        self.env = env or default_collaborators(db)

    def _lock_job(self, job_id: int) -> ServiceJob:
        job = (self.db.query(ServiceJob).filter(ServiceJob.id == int(job_id)).
               with_for_update().populate_existing().first())
        if not job:
            raise NotFoundError("Service job", job_id)
        return job

    def get_job(self, job_id: int) -> ServiceJob:
        job = self.db.get(ServiceJob, int(job_id))
        if not job:
            raise NotFoundError("Service job", job_id)
        return job

    # ------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------
    def create_from_order(self, order: Order) -> List[ServiceJob]:
        with atomic(self.db):
            have = {
                r[0]
                for r in self.db.query(ServiceJob.order_item_id).filter(
                    ServiceJob.order_id == order.id).all()
            }
            return [
                self.create_from_order_item(item) for item in order.items
                if item.id not in have
            ]

    def create_from_order_item(self, item: OrderItem) -> ServiceJob:
        with atomic(self.db):
            now = self.env.clock.now()
            job = ServiceJob(
                job_number=numbering.next_number(self.db,
                                                 doc_type=numbering.JOB,
                                                 now=now),
                order_id=item.order_id,
                order_item_id=item.id,
                status=J.PENDING,
                priority=JobPriority.normal,
                rework_count=0,
                due_date=now + timedelta(days=settings.JOB_DUE_DAYS),
                created_at=now,
            )
            self.db.add(job)
            self.db.flush()
            self._history(job, None, J.PENDING, None, "Job created")
            return job

    def _history(self, job: ServiceJob, from_status: Optional[JobStatus],
                 to_status: JobStatus, user: Any, reason: Optional[str]) -> None:
        self.db.add(
            ServiceStatusHistory(
                service_job_id=job.id,
                from_status=from_status.value if from_status else None,
                to_status=to_status.value,
                changed_by=_uid(user),
                reason=reason,
                created_at=self.env.clock.now(),
            ))
        self.db.flush()

    # ------------------------------------------------------------
    # Status
    # ------------------------------------------------------------
    def update_status(self,
                      job_id: int,
                      new_status: Any,
                      user: Any = None,
                      reason: Optional[str] = None) -> ServiceJob:
        target = _job_status(new_status)
        with atomic(self.db):
            job = self._lock_job(job_id)
            current = job.status
            if target not in JOB_TRANSITIONS.get(current, set()):
                raise InvalidTransition(current, target)

            now = self.env.clock.now()
            if target == J.IN_PROGRESS and not job.started_at:
                job.started_at = now
            if target == J.COMPLETED:
                job.completed_at = now
            if target == J.DELIVERED:
                job.delivered_at = now

            if target == J.REJECTED:
                # stored back as IN_PROGRESS; REJECTED lives only in history
                job.status = J.IN_PROGRESS
                job.rework_count = int(job.rework_count or 0) + 1
                job.last_rejection_reason = reason
                job.notes = f"QA Fail: {reason}" if reason else "QA Rejected - needs rework"
            else:
                job.status = target

            self._history(job, current, target, user, reason)

            if target == J.REJECTED and job.rework_count > MAX_REWORKS:
                self._alert_managers(job, "Job has failed QA more than twice")

            if target in DONE:
                self._advance_order(job)

            if target in NOTIFY_CREATOR_ON:
                self._notify_creator(job, target)

            return job

    def _advance_order(self, job: ServiceJob) -> None:
        order = self.db.get(Order, job.order_id)
        if not order:
            return
        statuses = [
            r[0] for r in self.db.query(ServiceJob.status).filter(
                ServiceJob.order_id == order.id).all()
        ]
        if not statuses or any(s not in DONE for s in statuses):
            return
        if order.status != OrderStatus.IN_PRODUCTION:
            return

        actor = self.system_actor()
        if actor is None:
            logger.warning("No admin user to move order #%s to READY",
                           order.order_number)
            return

        from printshop.services.order_workflow import OrderWorkflow

        with best_effort(self.db, f"auto READY for order #{order.order_number}"):
            OrderWorkflow(self.db, self.env).update_status(
                order.id, OrderStatus.READY, actor, "All service jobs completed")

    def system_actor(self) -> Optional[User]:
        """First admin user; acts for automatic transitions."""
        return (self.db.query(User).outerjoin(User.roles).filter(
            User.is_active.is_(True),
            or_(User.is_admin.is_(True), Role.name == "admin"),
        ).order_by(User.id.asc()).first())

    def _notify_creator(self, job: ServiceJob, status: JobStatus) -> None:
        order = self.db.get(Order, job.order_id)
        if not order or not order.created_by:
            return
        self.env.notifier.notify(
            order.created_by,
            "service_status",
            "Service Job Update",
            f"Job #{job.job_number} status changed to {status.value}",
            {"job_id": job.id, "order_id": order.id},
        )

    def _alert_managers(self, job: ServiceJob, message: str) -> int:
        return self.env.notifier.notify_roles(
            MANAGER_ROLES,
            "service_status",
            "Service Job Alert",
            f"{message} - Job #{job.job_number}",
            {"job_id": job.id},
        )

    # ------------------------------------------------------------
    # Assignment / priority / comments
    # ------------------------------------------------------------
    def assign(self, job_id: int, assignee: Any, assigned_by: Any) -> ServiceJob:
        with atomic(self.db):
            job = self._lock_job(job_id)
            if job.status in (J.CANCELLED, J.COMPLETED, J.DELIVERED):
                raise InvalidTransition(job.status, J.ACCEPTED)
            previous = job.status
            job.assigned_to = _uid(assignee)
            job.status = J.ACCEPTED
            self._history(job, previous, J.ACCEPTED, assigned_by,
                          f"Assigned to {getattr(assignee, 'name', '')}")
            self.env.notifier.notify(
                _uid(assignee),
                "service_status",
                "New Job Assigned",
                f"Job #{job.job_number} has been assigned to you",
                {"job_id": job.id},
            )
            return job

    def update_priority(self, job_id: int, priority: Any) -> ServiceJob:
        try:
            value = JobPriority(getattr(priority, "value", priority))
        except ValueError:
            raise ValidationError(f"Unknown job priority: {priority}")
        with atomic(self.db):
            job = self._lock_job(job_id)
            job.priority = value
            self.db.flush()
            return job

    def add_comment(self, job_id: int, user: Any, comment: str) -> ServiceJobComment:
        text = (comment or "").strip()
        if not text:
            raise ValidationError("Comment cannot be empty")
        with atomic(self.db):
            job = self.get_job(job_id)
            row = ServiceJobComment(
                service_job_id=job.id,
                user_id=_uid(user),
                comment=text,
                created_at=self.env.clock.now(),
            )
            self.db.add(row)
            self.db.flush()
            return row

    def list_comments(self, job_id: int) -> List[ServiceJobComment]:
        job = self.get_job(job_id)
        return (self.db.query(ServiceJobComment).filter(
            ServiceJobComment.service_job_id == job.id).order_by(
                ServiceJobComment.created_at.desc(),
                ServiceJobComment.id.desc()).all())

    # ------------------------------------------------------------
    # Cancel (hard delete)
    # ------------------------------------------------------------
    def cancel(self, job_id: int, user: Any, reason: str) -> None:
        with atomic(self.db):
            job = self._lock_job(job_id)
            old_status = job.status
            order = job.order
            self.db.delete(job)
            self.db.flush()
            if order is not None:
                self.db.expire(order, ["service_jobs"])

            self.env.auditor.record(
                _uid(user),
                "delete",
                "service_jobs",
                job_id,
                old_values={"status": old_status.value},
                new_values={"reason": reason},
            )

    # ------------------------------------------------------------
    # Queue / sweeps
    # ------------------------------------------------------------
    def queue(self, status: Any = J.PENDING) -> List[ServiceJob]:
        wanted = _job_status(status)
        rank = case(
            {p: r for p, r in PRIORITY_RANK.items()},
            value=ServiceJob.priority,
            else_=len(PRIORITY_RANK),
        )
        return (self.db.query(ServiceJob).filter(ServiceJob.status == wanted).
                order_by(rank.asc(), ServiceJob.due_date.asc(),
                         ServiceJob.id.asc()).all())

    def check_overdue_jobs(self) -> int:
        """Alert managers about jobs still PENDING a day past their due date."""
        cutoff = self.env.clock.now() - OVERDUE_GRACE
        with atomic(self.db):
            jobs = (self.db.query(ServiceJob).filter(
                ServiceJob.status == J.PENDING,
                ServiceJob.due_date < cutoff,
            ).order_by(ServiceJob.id.asc()).all())
            for job in jobs:
                self._alert_managers(job, "Job has been pending for more than 24 hours")
            return len(jobs)
