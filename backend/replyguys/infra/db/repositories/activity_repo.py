"""SQLAlchemy implementation of ActivityRepository."""

from __future__ import annotations

from sqlalchemy.orm import Session

from replyguys.domain.reports.ports import ActivityRepository
from replyguys.models.report import ActivityEvent
from replyguys.utils.clock import utcnow


class SqlActivityRepository(ActivityRepository):
    """Append and read report activity events."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def add(self, report_id: str, key: str, message: str, meta: dict | None = None) -> None:
        self._session.add(
            ActivityEvent(
                report_id=report_id,
                key=key,
                message=message,
                meta=meta,
                created_at=utcnow(),
            )
        )
        self._session.flush()

    def list_for_report(self, report_id: str, limit: int = 100) -> list[ActivityEvent]:
        return (
            self._session.query(ActivityEvent)
            .filter(ActivityEvent.report_id == report_id)
            .order_by(ActivityEvent.id.asc())
            .limit(limit)
            .all()
        )
