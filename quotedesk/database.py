"""Engine, session factory and declarative base for the quoting service."""
from __future__ import annotations

import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./quotedesk.db")
SQL_ECHO = os.getenv("QUOTEDESK_SQL_ECHO", "").lower() in {"1", "true", "yes"}


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _build_engine(url: str) -> Engine:
    """SQLite shares its connection with FastAPI's worker threads; servers get pre-ping."""

    engine_kwargs = {"future": True, "echo": SQL_ECHO}
    backend = make_url(url).get_backend_name()

    if backend == "sqlite":
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        built = create_engine(url, **engine_kwargs)
        event.listen(built, "connect", _enable_sqlite_foreign_keys)
        return built

    engine_kwargs["pool_pre_ping"] = True
    return create_engine(url, **engine_kwargs)


engine = _build_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def init_db(bind: Engine | None = None) -> None:
    """Create missing tables, partial unique indexes included."""

    from . import models  # noqa: F401  registers the mapped classes

    Base.metadata.create_all(bind=bind or engine)
