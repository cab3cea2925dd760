"""SQLAlchemy Unit of Work: concrete implementation of the domain UoW port.

Wraps a SQLAlchemy Session and exposes repository instances that share
the same session, so a service can read/write reports, replies and
activity within one transaction.
"""

from __future__ import annotations

from typing import Self

from sqlalchemy.orm import Session, sessionmaker

from replyguys.domain.common.uow import UnitOfWork
from replyguys.infra.db.repositories.activity_repo import SqlActivityRepository
from replyguys.infra.db.repositories.reply_repo import SqlReplyRepository
from replyguys.infra.db.repositories.report_repo import SqlReportRepository


class SqlUnitOfWork(UnitOfWork):
    """Transactional boundary backed by a SQLAlchemy Session."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def __enter__(self) -> Self:
        self.session: Session = self._session_factory()
        self.reports = SqlReportRepository(self.session)
        self.replies = SqlReplyRepository(self.session)
        self.activity = SqlActivityRepository(self.session)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.rollback()
        self.session.close()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
