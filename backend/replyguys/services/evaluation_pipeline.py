"""
Batched evaluation pipeline.

One call handles one batch of reply ids for one report:

1. Early exit when the report left ``scraping`` or already has enough
   qualified replies.
2. Claim the batch (pending → evaluating); already-evaluated ids drop out,
   which makes task retries idempotent.
3. Replies too short to matter are rejected without a model call.
4. The rest wait for a slot of the global "scoring" budget, then are
   scored one by one.  A failing reply is released back to pending and
   does not stop the others.
5. Verdicts persist, the qualified count is re-derived and the threshold
   monitor decides whether the report is done.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, List, Optional

from ..config import settings
from ..domain.common.uow import UnitOfWork
from ..domain.reports.models import ReportStatus, ReplyVerdict, Weights
from ..domain.reports.scoring import build_verdict, rejected_verdict
from ..domain.reports.text import is_meaningful
from ..utils.clock import utcnow
from .activity_log import ActivityLogger
from .rate_limiter import RedisRateLimiter, rate_limiter, scoring_budget
from .reply_evaluation_service import (
    EvaluationContext,
    ReplyEvaluationService,
    ReplyForScoring,
)
from .threshold_monitor import ThresholdMonitor

logger = logging.getLogger(__name__)


class EvaluationIncompleteError(Exception):
    """Some replies in the batch could not be scored; they were left pending."""

    def __init__(self, report_id: str, failed_ids: List[str]):
        super().__init__(
            f"{len(failed_ids)} replies of report {report_id} failed scoring and were left pending"
        )
        self.report_id = report_id
        self.failed_ids = failed_ids


@dataclass
class BatchOutcome:
    status: str  # evaluated, skipped
    reason: str = ""
    evaluated: int = 0
    prefiltered: int = 0
    included: int = 0
    qualified: int = 0
    triggered: bool = False


class EvaluationPipeline:
    """Score batches of replies under the global scoring budget."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        evaluator: ReplyEvaluationService,
        monitor: ThresholdMonitor,
        activity: ActivityLogger,
        limiter: Optional[RedisRateLimiter] = None,
    ):
        self._uow_factory = uow_factory
        self._evaluator = evaluator
        self._monitor = monitor
        self._activity = activity
        self._limiter = limiter or rate_limiter

    def evaluate_batch(self, report_id: str, reply_ids: List[str]) -> BatchOutcome:
        stale_before = utcnow() - timedelta(minutes=settings.evaluation_stale_minutes)

        with self._uow_factory() as uow:
            report = uow.reports.get(report_id)
            if report is None:
                return BatchOutcome(status="skipped", reason="not_found")
            if report.status != ReportStatus.SCRAPING.value:
                return BatchOutcome(status="skipped", reason=f"status_{report.status}")
            if uow.replies.count_qualified(report_id) >= report.reply_threshold:
                return BatchOutcome(status="skipped", reason="threshold_met")

            claimed = uow.replies.claim_for_evaluation(report_id, reply_ids, stale_before)
            if not claimed:
                uow.commit()
                return BatchOutcome(status="skipped", reason="nothing_to_claim")

            context = EvaluationContext(
                post_text=report.original_text or "",
                goal=report.goal,
                persona=report.persona,
            )
            weights = Weights.from_dict(report.weights)
            min_length = report.min_length or 0
            replies = [
                ReplyForScoring(
                    id=r.id,
                    username=r.author_handle,
                    follower_count=r.author_followers or 0,
                    text=r.text,
                )
                for r in uow.replies.get_many(report_id, claimed)
            ]
            uow.commit()

        verdicts: List[ReplyVerdict] = []
        to_score: List[ReplyForScoring] = []
        for reply in replies:
            if is_meaningful(reply.text, min_length):
                to_score.append(reply)
            else:
                verdicts.append(rejected_verdict(reply.id))
        prefiltered = len(verdicts)

        failed_ids: List[str] = []
        if to_score:
            try:
                self._limiter.acquire(scoring_budget())
            except Exception:
                self._persist(report_id, [r.id for r in to_score], verdicts)
                raise

            for reply in to_score:
                try:
                    scores = self._evaluator.evaluate(context, reply)
                except Exception as e:
                    logger.warning(
                        "Scoring failed for reply %s (report %s): %s", reply.id, report_id, e
                    )
                    failed_ids.append(reply.id)
                    continue
                verdicts.append(build_verdict(reply.id, scores, weights))

        self._persist(report_id, failed_ids, verdicts)

        included = sum(1 for v in verdicts if v.inclusion)
        check = self._monitor.check(report_id)

        self._activity.log(
            report_id,
            "evaluate",
            f"Scored {len(verdicts)} {'reply' if len(verdicts) == 1 else 'replies'}, "
            f"{included} qualified",
            {
                "evaluated": len(verdicts),
                "included": included,
                "prefiltered": prefiltered,
                "failed": len(failed_ids),
            },
        )

        if failed_ids:
            raise EvaluationIncompleteError(report_id, failed_ids)
        return BatchOutcome(
            status="evaluated",
            evaluated=len(verdicts),
            prefiltered=prefiltered,
            included=included,
            qualified=check.qualified,
            triggered=check.triggered,
        )

    def _persist(
        self, report_id: str, failed_ids: List[str], verdicts: List[ReplyVerdict]
    ) -> None:
        """Persist finished verdicts and hand unfinished claims back to pending."""
        with self._uow_factory() as uow:
            for verdict in verdicts:
                uow.replies.record_verdict(report_id, verdict)
            uow.replies.release(report_id, failed_ids)
            uow.commit()
