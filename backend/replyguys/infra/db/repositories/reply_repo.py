"""SQLAlchemy implementation of ReplyRepository."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import and_, func, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from replyguys.domain.reports.models import EvaluationStatus, ReplyVerdict, ScrapedReply
from replyguys.domain.reports.ports import ReplyRepository
from replyguys.models.report import Reply
from replyguys.utils.clock import utcnow

_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def _row_values(report_id: str, reply: ScrapedReply) -> dict:
    return {
        "id": reply.id,
        "report_id": report_id,
        "author_id": reply.author_id,
        "author_handle": reply.author_handle,
        "author_name": reply.author_name,
        "author_avatar": reply.author_avatar,
        "author_followers": reply.author_followers,
        "author_verified": reply.author_verified,
        "text": reply.text,
        "posted_at": reply.created_at,
        "evaluation_status": EvaluationStatus.PENDING.value,
        "created_at": utcnow(),
    }


class SqlReplyRepository(ReplyRepository):
    """Persist replies and their evaluation sub-record via SQLAlchemy."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def existing_ids(self, report_id: str, reply_ids: Sequence[str]) -> set[str]:
        if not reply_ids:
            return set()
        rows = (
            self._session.query(Reply.id)
            .filter(Reply.report_id == report_id, Reply.id.in_(list(reply_ids)))
            .all()
        )
        return {row[0] for row in rows}

    def insert_ignore_conflict(
        self, report_id: str, replies: Sequence[ScrapedReply]
    ) -> list[str]:
        if not replies:
            return []

        dialect = self._session.get_bind().dialect.name
        insert_fn = _INSERTS.get(dialect)
        inserted: list[str] = []

        for reply in replies:
            values = _row_values(report_id, reply)
            if insert_fn is not None:
                stmt = insert_fn(Reply).values(**values).on_conflict_do_nothing(
                    index_elements=["id", "report_id"]
                )
                result = self._session.execute(stmt)
                if result.rowcount == 1:
                    inserted.append(reply.id)
                continue

            # Dialects without ON CONFLICT: savepoint per row.
            try:
                with self._session.begin_nested():
                    self._session.add(Reply(**values))
                inserted.append(reply.id)
            except IntegrityError:
                pass

        self._session.flush()
        return inserted

    def get_many(self, report_id: str, reply_ids: Sequence[str]) -> list[Reply]:
        if not reply_ids:
            return []
        return (
            self._session.query(Reply)
            .filter(Reply.report_id == report_id, Reply.id.in_(list(reply_ids)))
            .all()
        )

    def claim_for_evaluation(
        self, report_id: str, reply_ids: Sequence[str], stale_before: datetime
    ) -> list[str]:
        if not reply_ids:
            return []

        claimable = or_(
            Reply.evaluation_status == EvaluationStatus.PENDING.value,
            and_(
                Reply.evaluation_status == EvaluationStatus.EVALUATING.value,
                or_(
                    Reply.evaluation_started_at.is_(None),
                    Reply.evaluation_started_at < stale_before,
                ),
            ),
        )
        candidates = [
            row[0]
            for row in self._session.query(Reply.id)
            .filter(
                Reply.report_id == report_id,
                Reply.id.in_(list(reply_ids)),
                claimable,
            )
            .all()
        ]

        claimed: list[str] = []
        now = utcnow()
        for reply_id in candidates:
            update_count = (
                self._session.query(Reply)
                .filter(Reply.report_id == report_id, Reply.id == reply_id, claimable)
                .update(
                    {
                        Reply.evaluation_status: EvaluationStatus.EVALUATING.value,
                        Reply.evaluation_started_at: now,
                    },
                    synchronize_session=False,
                )
            )
            if update_count == 1:
                claimed.append(reply_id)

        self._session.flush()
        self._session.expire_all()
        return claimed

    def release(self, report_id: str, reply_ids: Sequence[str]) -> None:
        if not reply_ids:
            return
        (
            self._session.query(Reply)
            .filter(
                Reply.report_id == report_id,
                Reply.id.in_(list(reply_ids)),
                Reply.evaluation_status == EvaluationStatus.EVALUATING.value,
            )
            .update(
                {
                    Reply.evaluation_status: EvaluationStatus.PENDING.value,
                    Reply.evaluation_started_at: None,
                },
                synchronize_session=False,
            )
        )
        self._session.flush()
        self._session.expire_all()

    def record_verdict(self, report_id: str, verdict: ReplyVerdict) -> None:
        values = {
            Reply.evaluation_status: EvaluationStatus.EVALUATED.value,
            Reply.weighted_score: verdict.weighted_score,
            Reply.inclusion: verdict.inclusion,
            Reply.evaluated_at: utcnow(),
        }
        scores = verdict.scores
        if scores is not None:
            values.update(
                {
                    Reply.goal_relevance: scores.goal_relevance,
                    Reply.actionability: scores.actionability,
                    Reply.specificity: scores.specificity,
                    Reply.substantiveness: scores.substantiveness,
                    Reply.constructiveness: scores.constructiveness,
                    Reply.tags: list(scores.tags),
                    Reply.mini_summary: scores.mini_summary,
                }
            )
        (
            self._session.query(Reply)
            .filter(Reply.report_id == report_id, Reply.id == verdict.reply_id)
            .update(values, synchronize_session=False)
        )
        self._session.flush()

    def count_all(self, report_id: str) -> int:
        return (
            self._session.query(func.count(Reply.id))
            .filter(Reply.report_id == report_id)
            .scalar()
            or 0
        )

    def count_qualified(self, report_id: str) -> int:
        return (
            self._session.query(func.count(Reply.id))
            .filter(Reply.report_id == report_id, Reply.inclusion.is_(True))
            .scalar()
            or 0
        )

    def list_qualified(self, report_id: str) -> list[Reply]:
        return (
            self._session.query(Reply)
            .filter(Reply.report_id == report_id, Reply.inclusion.is_(True))
            .order_by(Reply.weighted_score.desc(), Reply.id.asc())
            .all()
        )

    def list_stale_unevaluated(self, report_id: str, older_than: datetime) -> list[str]:
        rows = (
            self._session.query(Reply.id)
            .filter(
                Reply.report_id == report_id,
                or_(
                    and_(
                        Reply.evaluation_status == EvaluationStatus.PENDING.value,
                        Reply.created_at < older_than,
                    ),
                    and_(
                        Reply.evaluation_status == EvaluationStatus.EVALUATING.value,
                        Reply.evaluation_started_at < older_than,
                    ),
                ),
            )
            .order_by(Reply.created_at.asc())
            .all()
        )
        return [row[0] for row in rows]
