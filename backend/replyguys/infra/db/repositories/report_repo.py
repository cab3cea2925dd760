"""SQLAlchemy implementation of ReportRepository."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from replyguys.domain.reports.ports import ReportRepository
from replyguys.models.report import Report
from replyguys.utils.clock import utcnow


class SqlReportRepository(ReportRepository):
    """Persist and transition Report rows via SQLAlchemy."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, *, report_id: str, **fields) -> Report:
        report = Report(id=report_id, **fields)
        self._session.add(report)
        self._session.flush()
        return report

    def get(self, report_id: str) -> Report | None:
        return self._session.query(Report).filter(Report.id == report_id).first()

    def list_by_status(self, statuses: Iterable[str]) -> list[Report]:
        return (
            self._session.query(Report)
            .filter(Report.status.in_(list(statuses)))
            .order_by(Report.created_at.asc())
            .all()
        )

    def _cas(self, report_id: str, column, from_values: list, values: dict) -> bool:
        criteria = [Report.id == report_id]
        non_null = [v for v in from_values if v is not None]
        if None in from_values:
            criteria.append(or_(column.is_(None), column.in_(non_null)))
        else:
            criteria.append(column.in_(non_null))

        values[Report.updated_at] = utcnow()
        return self._apply(criteria, values) == 1

    def _apply(self, criteria: list, values: dict) -> int:
        update_count = (
            self._session.query(Report)
            .filter(*criteria)
            .update(values, synchronize_session=False)
        )
        self._session.flush()
        # Loaded instances would otherwise keep pre-update values.
        self._session.expire_all()
        return update_count

    def transition_status(
        self, report_id: str, from_statuses: Iterable[str], to_status: str, **fields
    ) -> bool:
        values = {Report.status: to_status}
        values.update({getattr(Report, k): v for k, v in fields.items()})
        return self._cas(report_id, Report.status, list(from_statuses), values)

    def transition_summary_status(
        self, report_id: str, from_statuses: Iterable[str], to_status: str, **fields
    ) -> bool:
        values = {Report.summary_status: to_status}
        values.update({getattr(Report, k): v for k, v in fields.items()})
        return self._cas(report_id, Report.summary_status, list(from_statuses), values)

    def transition_publication_status(
        self, report_id: str, from_statuses: Iterable[str | None], to_status: str, **fields
    ) -> bool:
        values = {Report.publication_status: to_status}
        values.update({getattr(Report, k): v for k, v in fields.items()})
        return self._cas(report_id, Report.publication_status, list(from_statuses), values)

    def advance_oldest_seen(self, report_id: str, value: datetime) -> bool:
        criteria = [
            Report.id == report_id,
            or_(Report.oldest_seen_at.is_(None), Report.oldest_seen_at > value),
        ]
        return self._apply(criteria, {Report.oldest_seen_at: value}) == 1

    def advance_newest_seen(self, report_id: str, value: datetime) -> bool:
        criteria = [
            Report.id == report_id,
            or_(Report.newest_seen_at.is_(None), Report.newest_seen_at < value),
        ]
        return self._apply(criteria, {Report.newest_seen_at: value}) == 1

    def set_scrape_phase(self, report_id: str, phase: str) -> None:
        self.update_fields(report_id, scrape_phase=phase)

    def update_fields(self, report_id: str, **fields) -> None:
        if not fields:
            return
        values = {getattr(Report, k): v for k, v in fields.items()}
        values[Report.updated_at] = utcnow()
        self._apply([Report.id == report_id], values)
