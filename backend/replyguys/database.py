"""
Engine and session factory for the report store.

Every Celery worker shares the reports, replies and activity tables; on
SQLite that means WAL plus a generous busy timeout so concurrent scrape
and evaluation tasks queue on the write lock instead of failing.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {},
    echo=False,  # Set to True for SQL query logging
    pool_pre_ping=True,  # Workers hold connections across long idle gaps
)


if "sqlite" in settings.database_url:

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=15000")
        # Replies and activity cascade with their report
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Short-lived sessions: one per unit of work, one per activity event
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db():
    """
    Create the reports, replies and report_activity tables if missing.
    Called when a worker reports ready.
    """
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
