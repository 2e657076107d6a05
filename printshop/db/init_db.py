# printshop/db/init_db.py
from __future__ import annotations

import argparse
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from printshop.core.config import settings
from printshop.db.session import engine as default_engine
from printshop.db.base import Base

# Import all models so metadata is complete
from printshop import models  # noqa: F401
from printshop.models import Role
from printshop.services.settings_service import TAX_RATE_KEY, get_setting, set_setting

ROLE_NAMES = (
    "admin",
    "manager",
    "counter_staff",
    "production_staff",
    "accountant",
)


def seed_roles(db: Session) -> int:
    """Insert missing roles; safe to run multiple times."""
    added = 0
    for name in ROLE_NAMES:
        if not db.query(Role).filter(Role.name == name).first():
            db.add(Role(name=name))
            added += 1
    db.flush()
    return added


def seed_settings(db: Session) -> None:
    if get_setting(db, TAX_RATE_KEY) is None:
        set_setting(db, TAX_RATE_KEY, settings.DEFAULT_TAX_RATE)


def run(fresh: bool = False, eng: Optional[Engine] = None) -> None:
    eng = eng or default_engine
    if fresh:
        print("WARNING: Dropping ALL tables (dev only) …")
        Base.metadata.drop_all(bind=eng)

    print("Creating all missing tables …")
    Base.metadata.create_all(bind=eng)
    print("Tables:", sorted(inspect(eng).get_table_names()))

    try:
        with Session(eng) as db:
            added = seed_roles(db)
            seed_settings(db)
            db.commit()
            print(f"Seeded {added} roles, tax_rate setting in place.")
    except SQLAlchemyError as e:
        print("Seeding failed:", e)
        raise


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Initialize DB (create tables, seed roles and settings).")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Drop & recreate all tables (DEV ONLY).",
    )
    args = parser.parse_args()
    run(fresh=args.fresh)
