"""
SQLAlchemy engine and session setup for the sql storage backend.
"""

from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Base class for models
Base = declarative_base()


def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """Create an engine, preparing the data directory for file-based SQLite."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # Needed for SQLite
        db_path = database_url.split("///", 1)[-1]
        if db_path and db_path != ":memory:" and "///" in database_url:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(database_url, connect_args=connect_args)

    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _set_sqlite_pragma)

    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Initialize database tables."""
    from blogcms.db import models  # noqa: F401 - Import models to register them
    Base.metadata.create_all(bind=engine)
