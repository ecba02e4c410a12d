"""Database layer for controlwatch."""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

# Declarative base for all ORM models
Base = declarative_base()


def make_engine(database_url: str):
    """Create an engine usable from scheduler worker threads."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            # A single shared connection, otherwise every thread sees its own empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=False, **kwargs)
    return create_engine(database_url, echo=False, pool_pre_ping=True)


def init_db(database_url: str, create_tables: bool = True):
    """Create an engine for ``database_url`` and optionally the schema."""
    engine = make_engine(database_url)
    if create_tables:
        from . import models  # noqa: F401  (register tables on Base)

        Base.metadata.create_all(engine)
    return engine
