from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from printshop.core.config import settings
from printshop.models.settings import Setting
from printshop.services.money import D

TAX_RATE_KEY = "tax_rate"


def get_setting(db: Session, key: str) -> Optional[str]:
    row = db.query(Setting).filter(Setting.key == key).first()
    return row.value if row else None


def set_setting(db: Session, key: str, value: Any) -> Setting:
    row = db.query(Setting).filter(Setting.key == key).first()
    if row is None:
        row = Setting(key=key)
        db.add(row)
    row.value = None if value is None else str(value)
    db.flush()
    return row


class DbSettingsStore:
    """Config store backed by the settings table."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str, default: Any = None) -> Any:
        v = get_setting(self.db, key)
        return default if v is None or v == "" else v


class StaticSettingsStore:
    """In-memory config store (tests, scripts)."""

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self.values = dict(values or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)


def tax_rate_percent(store) -> Decimal:
    """Configured tax rate in percent, 10 when not set."""
    return D(store.get(TAX_RATE_KEY, settings.DEFAULT_TAX_RATE))
