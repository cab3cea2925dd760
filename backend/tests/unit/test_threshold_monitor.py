"""Tests for ThresholdMonitor: the exactly-once synthesis trigger."""

from __future__ import annotations

import threading
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from replyguys.domain.common.uow import UnitOfWork
from replyguys.domain.reports.models import ReplyVerdict
from replyguys.models.report import ActivityEvent
from replyguys.services.threshold_monitor import ThresholdMonitor

from tests.unit.report_fakes import RecordingDispatcher, make_reply


def _seed_qualified(uow_factory, report_id: str, qualified: int, rejected: int = 0) -> None:
    with uow_factory() as uow:
        ids = [f"q{i}" for i in range(qualified)] + [f"r{i}" for i in range(rejected)]
        uow.replies.insert_ignore_conflict(report_id, [make_reply(i) for i in ids])
        for reply_id in ids:
            uow.replies.record_verdict(
                report_id,
                ReplyVerdict(reply_id, None, 50, inclusion=reply_id.startswith("q")),
            )
        uow.commit()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def monitor(uow_factory, dispatcher, activity):
    return ThresholdMonitor(uow_factory, dispatcher, activity)


class TestThresholdMonitor:
    def test_below_threshold_keeps_scraping(self, monitor, dispatcher, uow_factory, session, make_report):
        report_id = make_report(reply_threshold=3)
        _seed_qualified(uow_factory, report_id, qualified=2, rejected=4)

        check = monitor.check(report_id)

        assert check.qualified == 2
        assert check.triggered is False
        assert dispatcher.of("summary") == []
        with uow_factory() as uow:
            report = uow.reports.get(report_id)
            assert report.status == "scraping"
            assert report.qualified_count == 2
        keys = [e.key for e in session.query(ActivityEvent).all()]
        assert keys == ["progress"]

    def test_crossing_completes_and_requests_synthesis(self, monitor, dispatcher, uow_factory, make_report):
        report_id = make_report(reply_threshold=3)
        _seed_qualified(uow_factory, report_id, qualified=3)

        check = monitor.check(report_id)

        assert check.triggered is True
        assert dispatcher.of("summary") == [(report_id,)]
        with uow_factory() as uow:
            report = uow.reports.get(report_id)
            assert report.status == "completed"
            assert report.completed_at is not None
            assert report.qualified_count == 3

    def test_five_observers_one_synthesis_request(self, monitor, dispatcher, uow_factory, make_report):
        report_id = make_report(reply_threshold=3)
        _seed_qualified(uow_factory, report_id, qualified=4)

        results = [monitor.check(report_id) for _ in range(5)]

        assert sum(1 for r in results if r.triggered) == 1
        assert len(dispatcher.of("summary")) == 1

    def test_terminal_report_is_left_alone(self, monitor, dispatcher, uow_factory, make_report):
        report_id = make_report(reply_threshold=1, status="failed")
        _seed_qualified(uow_factory, report_id, qualified=2)

        check = monitor.check(report_id)

        assert check.triggered is False
        assert dispatcher.calls == []
        with uow_factory() as uow:
            assert uow.reports.get(report_id).status == "failed"

    def test_unknown_report(self, monitor, dispatcher):
        check = monitor.check("missing")
        assert check.triggered is False
        assert dispatcher.calls == []


# ── Concurrent observers ────────────────────────────────────────────────


class _LockedReports:
    """Report store whose compare-and-set is atomic, like a conditional UPDATE."""

    def __init__(self, status: str, threshold: int) -> None:
        self.row = SimpleNamespace(status=status, reply_threshold=threshold, qualified_count=0)
        self._lock = threading.Lock()

    def get(self, report_id):
        return SimpleNamespace(**vars(self.row))

    def update_fields(self, report_id, **fields):
        with self._lock:
            for k, v in fields.items():
                setattr(self.row, k, v)

    def transition_status(self, report_id, from_statuses, to_status, **fields):
        with self._lock:
            if self.row.status not in from_statuses:
                return False
            self.row.status = to_status
            for k, v in fields.items():
                setattr(self.row, k, v)
            return True


class _SharedUnitOfWork(UnitOfWork):
    def __init__(self, reports, qualified: int) -> None:
        self.reports = reports
        self.replies = SimpleNamespace(count_qualified=lambda report_id: qualified)
        self.activity = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        pass

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass


class TestConcurrentObservers:
    def test_racing_threads_trigger_once(self):
        reports = _LockedReports(status="scraping", threshold=3)
        dispatcher = RecordingDispatcher()
        monitor = ThresholdMonitor(lambda: _SharedUnitOfWork(reports, qualified=3), dispatcher, MagicMock())

        barrier = threading.Barrier(5)
        results = []

        def _observe():
            barrier.wait()
            results.append(monitor.check("r1"))

        threads = [threading.Thread(target=_observe) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(1 for r in results if r.triggered) == 1
        assert len(dispatcher.of("summary")) == 1
        assert reports.row.status == "completed"
