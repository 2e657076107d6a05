# printshop/db/session.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from printshop.core.config import settings

logger = logging.getLogger(__name__)


def _enable_sqlite_savepoints(eng: Engine) -> None:
    # pysqlite opens transactions lazily, which breaks SAVEPOINT;
    # take over BEGIN ourselves.
    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_db_engine(db_uri: str) -> Engine:
    if db_uri.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in db_uri or db_uri.rstrip("/") == "sqlite:":
            # single shared connection, otherwise every checkout is a new empty db
            kwargs["poolclass"] = StaticPool
        eng = create_engine(db_uri, future=True, **kwargs)
        _enable_sqlite_savepoints(eng)
        return eng

    return create_engine(
        db_uri,
        pool_pre_ping=True,
        pool_recycle=280,
        pool_size=10,
        max_overflow=20,
        future=True,
    )


engine: Engine = create_db_engine(settings.SQLALCHEMY_DATABASE_URI)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)


def make_session_factory(eng: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=eng, future=True)


# ============================================================
# Transaction scopes
# ============================================================
@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    All-or-nothing unit of work.

    The outermost scope commits on success and rolls back on any error.
    Nested scopes (one workflow calling another) join the outer unit,
    so a multi-entity write is never half applied.
    """
    depth = db.info.get("atomic_depth", 0)
    db.info["atomic_depth"] = depth + 1
    try:
        yield db
        if depth == 0:
            db.commit()
    except Exception:
        if depth == 0:
            db.rollback()
        raise
    finally:
        db.info["atomic_depth"] = depth


@contextmanager
def best_effort(db: Session, what: str) -> Iterator[None]:
    """
    Run a side effect inside a SAVEPOINT.
    A failure rolls back only the savepoint and is logged, the
    surrounding unit of work carries on.
    """
    try:
        with db.begin_nested():
            yield
    except Exception:
        logger.exception("Best-effort step failed: %s", what)
