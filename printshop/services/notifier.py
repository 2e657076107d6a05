from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from printshop.db.session import best_effort
from printshop.models.notification import Notification
from printshop.models.user import Role, User

logger = logging.getLogger(__name__)


def users_with_roles(db: Session, roles: Iterable[str]) -> List[User]:
    names = [r for r in roles if r]
    if not names:
        return []
    return (db.query(User).join(User.roles).filter(
        Role.name.in_(names),
        User.is_active.is_(True),
    ).order_by(User.id.asc()).distinct().all())


class DbNotificationSink:
    """
    Stores notifications as rows; delivery is someone else's job.
    Fire-and-forget: each write sits in its own savepoint.
    """

    def __init__(self, db: Session):
        self.db = db

    def notify(self,
               user_id: int,
               type: str,
               title: str,
               message: str,
               data: Optional[Dict[str, Any]] = None) -> None:
        if not user_id:
            return
        with best_effort(self.db, f"notify user {user_id}: {title}"):
            self.db.add(
                Notification(
                    user_id=user_id,
                    type=type,
                    title=title,
                    message=message,
                    data=data,
                ))
            self.db.flush()

    def notify_roles(self,
                     roles: Iterable[str],
                     type: str,
                     title: str,
                     message: str,
                     data: Optional[Dict[str, Any]] = None) -> int:
        sent = 0
        for u in users_with_roles(self.db, roles):
            self.notify(u.id, type, title, message, data)
            sent += 1
        return sent
