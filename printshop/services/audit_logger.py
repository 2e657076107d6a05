from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from printshop.db.session import best_effort
from printshop.models.audit import AuditLog

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    *,
    user_id: Optional[int],
    action: str,  # "update" | "cancel" | "delete" ...
    table_name: str,
    record_id: Any,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Write one audit row inside a savepoint.
    Failure is logged and never breaks the caller's transaction.
    """
    with best_effort(db, f"audit {action} {table_name}#{record_id}"):
        db.add(
            AuditLog(
                user_id=user_id,
                action=action,
                table_name=table_name,
                record_id=str(record_id),
                old_values=old_values,
                new_values=new_values,
            ))
        db.flush()


class DbAuditSink:

    def __init__(self, db: Session):
        self.db = db

    def record(self,
               actor_id: Optional[int],
               action: str,
               entity_type: str,
               entity_id: Any,
               old_values: Optional[Dict[str, Any]] = None,
               new_values: Optional[Dict[str, Any]] = None) -> None:
        log_audit(self.db,
                  user_id=actor_id,
                  action=action,
                  table_name=entity_type,
                  record_id=entity_id,
                  old_values=old_values,
                  new_values=new_values)
