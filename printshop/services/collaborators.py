# printshop/services/collaborators.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Protocol

from sqlalchemy.orm import Session

from printshop.core.clock import Clock, system_clock
from printshop.core.rbac import RoleLookup
from printshop.services.audit_logger import DbAuditSink
from printshop.services.notifier import DbNotificationSink
from printshop.services.settings_service import DbSettingsStore


class ConfigStore(Protocol):

    def get(self, key: str, default: Any = None) -> Any:
        ...


class NotificationSink(Protocol):

    def notify(self, user_id: int, type: str, title: str, message: str,
               data: Optional[Dict[str, Any]] = None) -> None:
        ...

    def notify_roles(self, roles: Iterable[str], type: str, title: str,
                     message: str,
                     data: Optional[Dict[str, Any]] = None) -> int:
        ...


class AuditSink(Protocol):

    def record(self, actor_id: Optional[int], action: str, entity_type: str,
               entity_id: Any,
               old_values: Optional[Dict[str, Any]] = None,
               new_values: Optional[Dict[str, Any]] = None) -> None:
        ...


@dataclass
class Collaborators:
    """Everything a workflow needs from outside the order/invoice tables."""
    clock: Clock
    config: ConfigStore
    notifier: NotificationSink
    auditor: AuditSink
    roles: RoleLookup


def default_collaborators(db: Session,
                          *,
                          clock: Optional[Clock] = None,
                          config: Optional[ConfigStore] = None) -> Collaborators:
    return Collaborators(
        clock=clock or system_clock,
        config=config or DbSettingsStore(db),
        notifier=DbNotificationSink(db),
        auditor=DbAuditSink(db),
        roles=RoleLookup(),
    )
