"""
SQLAlchemy declarative base and engine/session factories.

Only the SYNC engine exists here: the job store is written from worker
threads, and the monitoring API reaches it through the Worker, never
through its own session. A sync session inside a thread is the correct
pattern; an async one would need an event loop the worker threads don't have.

Pool sizing comes from DatabaseSettings:
    max_connections    → pool_size (with no overflow)
    connection_timeout → pool_timeout (seconds to wait for a free connection)
SQLite (used by the tests) has no real pool, so those arguments are skipped.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from config.settings import DatabaseSettings


class Base(DeclarativeBase):
    """Base class for all ORM models. SQLAlchemy uses this to track table metadata."""
    pass


def build_engine(db: DatabaseSettings) -> Engine:
    if db.url.startswith("sqlite"):
        return create_engine(db.url, echo=False)
    return create_engine(
        db.url,
        echo=False,
        pool_size=db.max_connections,
        max_overflow=0,
        pool_timeout=db.connection_timeout,
        pool_pre_ping=True,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(engine, expire_on_commit=False)
