"""Tests for SqlReplyRepository using in-memory SQLite."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from replyguys.domain.reports.models import ReplyScores, ReplyVerdict
from replyguys.infra.db.repositories.activity_repo import SqlActivityRepository
from replyguys.infra.db.repositories.reply_repo import SqlReplyRepository
from replyguys.models.report import Reply
from replyguys.utils.clock import utcnow

from tests.unit.report_fakes import make_reply


@pytest.fixture
def repo(session: Session) -> SqlReplyRepository:
    return SqlReplyRepository(session)


def _verdict(reply_id: str, weighted: int, included: bool) -> ReplyVerdict:
    scores = ReplyScores(
        goal_relevance=80,
        actionability=70,
        specificity=60,
        substantiveness=50,
        constructiveness=40,
        tags=["suggestion"],
        mini_summary="Useful",
        to_be_included=included,
    )
    return ReplyVerdict(reply_id=reply_id, scores=scores, weighted_score=weighted, inclusion=included)


class TestInsertIgnoreConflict:
    def test_insert_is_idempotent(self, repo, session, make_report):
        report_id = make_report()
        replies = [make_reply("1"), make_reply("2")]

        assert repo.insert_ignore_conflict(report_id, replies) == ["1", "2"]
        assert repo.insert_ignore_conflict(report_id, replies) == []
        session.commit()
        assert repo.count_all(report_id) == 2

    def test_same_reply_in_two_reports(self, repo, make_report):
        first = make_report(id="first")
        second = make_report(id="second")

        assert repo.insert_ignore_conflict(first, [make_reply("1")]) == ["1"]
        assert repo.insert_ignore_conflict(second, [make_reply("1")]) == ["1"]

    def test_new_rows_start_pending(self, repo, make_report):
        report_id = make_report()
        repo.insert_ignore_conflict(report_id, [make_reply("1", followers=321, verified=True)])

        row = repo.get_many(report_id, ["1"])[0]
        assert row.evaluation_status == "pending"
        assert row.author_followers == 321
        assert row.author_verified is True
        assert row.inclusion is None

    def test_existing_ids(self, repo, make_report):
        report_id = make_report()
        repo.insert_ignore_conflict(report_id, [make_reply("1")])

        assert repo.existing_ids(report_id, ["1", "2"]) == {"1"}
        assert repo.existing_ids(report_id, []) == set()


class TestClaimAndRelease:
    def test_claim_moves_pending_to_evaluating(self, repo, make_report):
        report_id = make_report()
        repo.insert_ignore_conflict(report_id, [make_reply("1"), make_reply("2")])

        claimed = repo.claim_for_evaluation(report_id, ["1", "2"], utcnow() - timedelta(minutes=15))
        assert sorted(claimed) == ["1", "2"]
        assert {r.evaluation_status for r in repo.get_many(report_id, ["1", "2"])} == {"evaluating"}

    def test_fresh_claim_is_not_stolen(self, repo, make_report):
        report_id = make_report()
        repo.insert_ignore_conflict(report_id, [make_reply("1")])
        stale_before = utcnow() - timedelta(minutes=15)

        assert repo.claim_for_evaluation(report_id, ["1"], stale_before) == ["1"]
        assert repo.claim_for_evaluation(report_id, ["1"], stale_before) == []

    def test_stale_claim_is_reclaimed(self, repo, session, make_report):
        report_id = make_report()
        repo.insert_ignore_conflict(report_id, [make_reply("1")])
        session.query(Reply).filter(Reply.id == "1").update(
            {
                Reply.evaluation_status: "evaluating",
                Reply.evaluation_started_at: utcnow() - timedelta(hours=1),
            }
        )

        assert repo.claim_for_evaluation(report_id, ["1"], utcnow() - timedelta(minutes=15)) == ["1"]

    def test_evaluated_rows_are_never_claimed(self, repo, make_report):
        report_id = make_report()
        repo.insert_ignore_conflict(report_id, [make_reply("1")])
        repo.claim_for_evaluation(report_id, ["1"], utcnow())
        repo.record_verdict(report_id, _verdict("1", 40, True))

        assert repo.claim_for_evaluation(report_id, ["1"], utcnow() + timedelta(hours=1)) == []

    def test_release_returns_claims_to_pending(self, repo, make_report):
        report_id = make_report()
        repo.insert_ignore_conflict(report_id, [make_reply("1")])
        repo.claim_for_evaluation(report_id, ["1"], utcnow())

        repo.release(report_id, ["1"])
        row = repo.get_many(report_id, ["1"])[0]
        assert row.evaluation_status == "pending"
        assert row.evaluation_started_at is None


class TestVerdicts:
    def test_record_and_count_qualified(self, repo, make_report):
        report_id = make_report()
        repo.insert_ignore_conflict(report_id, [make_reply("1"), make_reply("2"), make_reply("3")])

        repo.record_verdict(report_id, _verdict("1", 30, True))
        repo.record_verdict(report_id, _verdict("2", 60, True))
        repo.record_verdict(report_id, _verdict("3", 90, False))

        assert repo.count_qualified(report_id) == 2
        assert [r.id for r in repo.list_qualified(report_id)] == ["2", "1"]

    def test_ties_order_by_id(self, repo, make_report):
        report_id = make_report()
        repo.insert_ignore_conflict(report_id, [make_reply("b"), make_reply("a")])
        repo.record_verdict(report_id, _verdict("b", 50, True))
        repo.record_verdict(report_id, _verdict("a", 50, True))

        assert [r.id for r in repo.list_qualified(report_id)] == ["a", "b"]

    def test_rejected_verdict_keeps_scores_empty(self, repo, make_report):
        report_id = make_report()
        repo.insert_ignore_conflict(report_id, [make_reply("1")])

        repo.record_verdict(report_id, ReplyVerdict("1", None, 0, False))
        row = repo.get_many(report_id, ["1"])[0]
        assert row.evaluation_status == "evaluated"
        assert row.goal_relevance is None
        assert row.inclusion is False


class TestStaleUnevaluated:
    def test_old_pending_and_stuck_evaluating(self, repo, session, make_report):
        report_id = make_report()
        repo.insert_ignore_conflict(
            report_id, [make_reply("old"), make_reply("stuck"), make_reply("new"), make_reply("done")]
        )
        hour_ago = utcnow() - timedelta(hours=1)
        session.query(Reply).filter(Reply.id.in_(["old", "stuck", "done"])).update(
            {Reply.created_at: hour_ago}, synchronize_session=False
        )
        session.query(Reply).filter(Reply.id == "stuck").update(
            {Reply.evaluation_status: "evaluating", Reply.evaluation_started_at: hour_ago},
            synchronize_session=False,
        )
        repo.record_verdict(report_id, _verdict("done", 10, False))

        stale = repo.list_stale_unevaluated(report_id, utcnow() - timedelta(minutes=15))
        assert sorted(stale) == ["old", "stuck"]


class TestActivityRepository:
    def test_events_are_listed_in_order(self, session, make_report):
        report_id = make_report()
        activity = SqlActivityRepository(session)
        activity.add(report_id, "scrape", "Found 3 replies", {"found": 3})
        activity.add(report_id, "insert", "Saved 3 new replies")
        session.commit()

        events = activity.list_for_report(report_id)
        assert [e.key for e in events] == ["scrape", "insert"]
        assert events[0].meta == {"found": 3}
