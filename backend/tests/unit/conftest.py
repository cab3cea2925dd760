"""Shared fixtures for unit tests.

Provides an in-memory SQLite database shared by every session of a test,
a unit-of-work factory bound to it, and a report factory.  Redis is
stubbed out so nothing reaches the network.
"""

from __future__ import annotations

import os
from datetime import timedelta

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from replyguys.database import Base
from replyguys.infra.db.uow import SqlUnitOfWork
from replyguys.models.report import Report
from replyguys.services.activity_log import ActivityLogger
from replyguys.utils.clock import utcnow

# Force model registration so create_all picks up every table.
import replyguys.models  # noqa: F401


@pytest.fixture(autouse=True)
def _stub_redis(monkeypatch):
    """Avoid Redis connection attempts in unit tests."""
    from replyguys.services import redis_pool

    monkeypatch.setattr(redis_pool, "get_redis_pool", lambda: None, raising=True)
    monkeypatch.setattr(redis_pool, "get_redis_client", lambda: None, raising=True)
    redis_pool._pool = None
    yield


@pytest.fixture
def engine():
    """Function-scoped :memory: SQLite engine with FK enforcement.

    StaticPool keeps a single connection so every session of the test
    sees the same database.
    """
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng, "connect")
    def _set_fk_pragma(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def session(session_factory):
    sess = session_factory()
    yield sess
    sess.close()


@pytest.fixture
def uow_factory(session_factory):
    return lambda: SqlUnitOfWork(session_factory)


@pytest.fixture
def activity(session_factory):
    return ActivityLogger(session_factory)


@pytest.fixture
def make_report(session_factory):
    """Insert a report row and return its id.

    ``age`` backdates ``created_at``; any other keyword overrides a column.
    """
    counter = {"n": 0}

    def _make(age: timedelta | None = None, **overrides) -> str:
        counter["n"] += 1
        report_id = overrides.pop("id", f"report-{counter['n']}")
        created_at = utcnow() - (age or timedelta())
        fields = dict(
            id=report_id,
            conversation_id="1790000000000000000",
            post_url="https://x.com/founder/status/1790000000000000000",
            goal="Find feature requests for the mobile app",
            weights={
                "actionability": 25,
                "specificity": 25,
                "substantiveness": 25,
                "constructiveness": 25,
            },
            reply_threshold=5,
            min_length=0,
            status="scraping",
            summary_status="pending",
            original_text="What should we build next?",
            original_author_handle="founder",
            created_at=created_at,
            updated_at=created_at,
        )
        fields.update(overrides)
        sess = session_factory()
        try:
            sess.add(Report(**fields))
            sess.commit()
        finally:
            sess.close()
        return report_id

    return _make
