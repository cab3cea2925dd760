"""Tests for ReportSupervisor: timeout, recovery and scrape ticks."""

from __future__ import annotations

from datetime import timedelta

import pytest

from replyguys.domain.reports.models import ReplyVerdict
from replyguys.models.report import ActivityEvent, Reply
from replyguys.services.summary_generation_service import TIMEOUT_NO_SIGNAL_SUMMARY
from replyguys.services.supervisor import ReportSupervisor
from replyguys.utils.clock import utcnow

from tests.unit.report_fakes import RecordingDispatcher, make_reply


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def supervisor(uow_factory, dispatcher, activity):
    return ReportSupervisor(uow_factory, dispatcher, activity)


def _report(uow_factory, report_id):
    with uow_factory() as uow:
        report = uow.reports.get(report_id)
        uow.session.expunge(report)
        return report


class TestTimeout:
    def test_no_signal_completes_with_placeholder(self, supervisor, dispatcher, uow_factory, session, make_report):
        report_id = make_report(age=timedelta(hours=25))

        result = supervisor.sweep()

        assert result.timed_out == 1
        report = _report(uow_factory, report_id)
        assert report.status == "completed"
        assert report.summary_status == "completed"
        assert report.summary["executive_summary"] == TIMEOUT_NO_SIGNAL_SUMMARY
        assert report.qualified_count == 0
        # The synthesis model is never asked for a report without signal.
        assert dispatcher.of("summary") == []
        assert dispatcher.of("scrape") == []
        assert [e.key for e in session.query(ActivityEvent).all()] == ["timeout"]

    def test_timeout_with_signal_leaves_summary_pending(self, supervisor, dispatcher, uow_factory, make_report):
        report_id = make_report(age=timedelta(hours=25), reply_threshold=50)
        with uow_factory() as uow:
            uow.replies.insert_ignore_conflict(report_id, [make_reply("1"), make_reply("2")])
            uow.replies.record_verdict(report_id, ReplyVerdict("1", None, 70, True))
            uow.commit()

        supervisor.sweep()

        report = _report(uow_factory, report_id)
        assert report.status == "completed"
        assert report.summary_status == "pending"
        assert report.summary is None
        assert report.qualified_count == 1
        assert dispatcher.of("summary") == []

    @pytest.mark.parametrize("status", ["setting_up", "pending"])
    def test_every_active_status_times_out(self, supervisor, uow_factory, make_report, status):
        report_id = make_report(age=timedelta(hours=30), status=status)

        supervisor.sweep()

        assert _report(uow_factory, report_id).status == "completed"

    def test_finalize_is_won_once(self, supervisor, make_report):
        report_id = make_report(age=timedelta(hours=25))

        assert supervisor.finalize_timeout(report_id) is True
        assert supervisor.finalize_timeout(report_id) is False

    def test_inside_the_window_nothing_times_out(self, supervisor, uow_factory, make_report):
        report_id = make_report(age=timedelta(hours=23))

        result = supervisor.sweep()

        assert result.timed_out == 0
        assert _report(uow_factory, report_id).status == "scraping"


class TestTicks:
    def test_scraping_and_pending_reports_get_a_tick(self, supervisor, dispatcher, make_report):
        scraping = make_report(id="scraping", status="scraping")
        pending = make_report(id="pending", status="pending")
        make_report(id="done", status="completed")
        make_report(id="failed", status="failed")

        result = supervisor.sweep()

        assert result.checked == 2
        assert result.ticks == 2
        assert sorted(args[0] for args in dispatcher.of("scrape")) == sorted([scraping, pending])

    def test_fresh_setup_is_left_alone(self, supervisor, dispatcher, make_report):
        make_report(status="setting_up", age=timedelta(minutes=2))

        supervisor.sweep()

        assert dispatcher.calls == []

    def test_stale_setup_is_redispatched(self, supervisor, dispatcher, make_report):
        report_id = make_report(status="setting_up", age=timedelta(minutes=30))

        result = supervisor.sweep()

        assert result.setups_redispatched == 1
        assert dispatcher.of("setup") == [(report_id,)]
        assert dispatcher.of("scrape") == []


class TestEvaluationRearm:
    def test_stuck_replies_are_rearmed(self, supervisor, dispatcher, uow_factory, session, make_report, monkeypatch):
        from replyguys.config import settings

        monkeypatch.setattr(settings, "evaluation_batch_size", 2)
        report_id = make_report()
        with uow_factory() as uow:
            uow.replies.insert_ignore_conflict(report_id, [make_reply(str(i)) for i in range(1, 6)])
            uow.commit()
        hour_ago = utcnow() - timedelta(hours=1)
        session.query(Reply).filter(Reply.id.in_(["1", "2", "3"])).update(
            {Reply.created_at: hour_ago}, synchronize_session=False
        )
        session.commit()

        result = supervisor.sweep()

        assert result.evaluations_rearmed == 2
        batches = [args[1] for args in dispatcher.of("evaluation")]
        assert sorted(sum(batches, [])) == ["1", "2", "3"]
        assert dispatcher.of("scrape") == [(report_id,)]

    def test_pending_report_is_not_rearmed(self, supervisor, dispatcher, make_report):
        make_report(status="pending")

        supervisor.sweep()

        assert dispatcher.of("evaluation") == []


class TestIsolation:
    def test_one_failing_report_does_not_stop_the_sweep(self, supervisor, dispatcher, make_report, monkeypatch):
        make_report(id="a")
        make_report(id="b")
        original = dispatcher.dispatch_scrape

        def _flaky(report_id):
            if report_id == "a":
                raise ConnectionError("broker down")
            return original(report_id)

        monkeypatch.setattr(dispatcher, "dispatch_scrape", _flaky)

        result = supervisor.sweep()

        assert result.checked == 2
        assert result.errors == [{"report_id": "a", "error": "broker down"}]
        assert dispatcher.of("scrape") == [("b",)]
