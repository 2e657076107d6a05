from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    JSON,
)

from printshop.db.base import Base


class AuditLog(Base):
    """
    Audit trail for sensitive changes (discounts, cancellations, job deletes).
    """
    __tablename__ = "audit_logs"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, nullable=True)  # system jobs may be null
    action = Column(String(20), nullable=False)  # update / cancel / delete ...

    table_name = Column(String(255), nullable=False)
    record_id = Column(String(100),
                       nullable=False)  # generic pk, stored as string

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
