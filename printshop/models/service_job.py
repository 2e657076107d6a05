# printshop/models/service_job.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (Column, Integer, String, DateTime, Enum, ForeignKey,
                        Index, Text)
from sqlalchemy.orm import relationship

from printshop.db.base import Base


class JobStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    ON_HOLD = "ON_HOLD"
    QA_REVIEW = "QA_REVIEW"
    # logical only: a rejected job is stored back as IN_PROGRESS
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    DELIVERED = "DELIVERED"


class JobPriority(str, enum.Enum):
    urgent = "urgent"
    high = "high"
    normal = "normal"
    low = "low"


class ServiceJob(Base):
    """Production work unit, one per order item."""
    __tablename__ = "service_jobs"
    __table_args__ = (
        Index("ix_service_jobs_order", "order_id"),
        Index("ix_service_jobs_status_due", "status", "due_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    job_number = Column(String(32), unique=True, index=True, nullable=False)

    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    order_item_id = Column(Integer,
                           ForeignKey("order_items.id"),
                           nullable=True)

    status = Column(Enum(JobStatus, native_enum=False),
                    nullable=False,
                    default=JobStatus.PENDING)
    priority = Column(Enum(JobPriority, native_enum=False),
                      nullable=False,
                      default=JobPriority.normal)

    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    rework_count = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    last_rejection_reason = Column(String(255), nullable=True)

    due_date = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("Order", back_populates="service_jobs")
    order_item = relationship("OrderItem")
    history = relationship(
        "ServiceStatusHistory",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="ServiceStatusHistory.id",
    )
    comments = relationship(
        "ServiceJobComment",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="ServiceJobComment.id",
    )


class ServiceStatusHistory(Base):
    __tablename__ = "service_status_history"

    id = Column(Integer, primary_key=True, index=True)
    service_job_id = Column(Integer,
                            ForeignKey("service_jobs.id", ondelete="CASCADE"),
                            nullable=False,
                            index=True)
    from_status = Column(String(32), nullable=True)
    to_status = Column(String(32), nullable=False)
    changed_by = Column(Integer, ForeignKey("users.id"),
                        nullable=True)  # null = system
    reason = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    job = relationship("ServiceJob", back_populates="history")


class ServiceJobComment(Base):
    __tablename__ = "service_job_comments"

    id = Column(Integer, primary_key=True, index=True)
    service_job_id = Column(Integer,
                            ForeignKey("service_jobs.id", ondelete="CASCADE"),
                            nullable=False,
                            index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    comment = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    job = relationship("ServiceJob", back_populates="comments")
