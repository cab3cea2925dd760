"""
Synthesis step: turn a completed report's qualified replies into the
final summary.

The summary sub-status is claimed with a compare-and-set
(pending → generating) so duplicate requests collapse into one model
call.  A failed attempt hands the claim back so the task retry can take
it again.
"""
import logging
from typing import Callable, Optional

from ..config import settings
from ..domain.common.uow import UnitOfWork
from ..domain.reports.models import ReportStatus, SummaryStatus
from ..domain.reports.ports import TaskDispatcher
from .activity_log import ActivityLogger
from .rate_limiter import RedisRateLimiter, rate_limiter, synthesis_budget
from .reply_evaluation_service import EvaluationContext
from .summary_generation_service import QualifiedReply, SummaryGenerationService

logger = logging.getLogger(__name__)


class ReportSynthesisService:
    """Claim, generate and store a report summary."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        generator: SummaryGenerationService,
        dispatcher: TaskDispatcher,
        activity: ActivityLogger,
        limiter: Optional[RedisRateLimiter] = None,
    ):
        self._uow_factory = uow_factory
        self._generator = generator
        self._dispatcher = dispatcher
        self._activity = activity
        self._limiter = limiter or rate_limiter

    def run(self, report_id: str) -> str:
        """Returns the resulting summary status, or "skipped"."""
        with self._uow_factory() as uow:
            report = uow.reports.get(report_id)
            if report is None or report.status != ReportStatus.COMPLETED.value:
                return "skipped"
            if not uow.reports.transition_summary_status(
                report_id, [SummaryStatus.PENDING.value], SummaryStatus.GENERATING.value
            ):
                return "skipped"

            report = uow.reports.get(report_id)
            context = EvaluationContext(
                post_text=report.original_text or "",
                goal=report.goal,
                persona=report.persona,
            )
            publish = bool(report.publish_requested)
            replies = [
                QualifiedReply(
                    id=r.id,
                    username=r.author_handle,
                    follower_count=r.author_followers or 0,
                    text=r.text,
                    goal_relevance=r.goal_relevance or 0,
                    actionability=r.actionability or 0,
                    specificity=r.specificity or 0,
                    substantiveness=r.substantiveness or 0,
                    constructiveness=r.constructiveness or 0,
                    tags=list(r.tags or []),
                    mini_summary=r.mini_summary or "",
                )
                for r in uow.replies.list_qualified(report_id)
            ]
            uow.commit()

        self._activity.log(
            report_id,
            "summary",
            f"Writing report from {len(replies)} qualified "
            f"{'reply' if len(replies) == 1 else 'replies'}",
            {"qualified": len(replies)},
        )

        try:
            if replies:
                self._limiter.acquire(synthesis_budget())
            summary = self._generator.generate(context, replies)
        except Exception:
            self._release_claim(report_id)
            raise

        with self._uow_factory() as uow:
            stored = uow.reports.transition_summary_status(
                report_id,
                [SummaryStatus.GENERATING.value],
                SummaryStatus.COMPLETED.value,
                summary=summary.model_dump(exclude_none=True),
            )
            if publish and settings.publication_enabled:
                uow.reports.transition_publication_status(
                    report_id, [None], "pending"
                )
            uow.commit()

        if not stored:
            return "skipped"

        self._activity.log(report_id, "summary", "Report ready")
        if publish and settings.publication_enabled:
            self._dispatcher.dispatch_publication(report_id)
        return SummaryStatus.COMPLETED.value

    def _release_claim(self, report_id: str) -> None:
        with self._uow_factory() as uow:
            uow.reports.transition_summary_status(
                report_id, [SummaryStatus.GENERATING.value], SummaryStatus.PENDING.value
            )
            uow.commit()

    def mark_failed(self, report_id: str, error: str) -> None:
        """Called by the task layer once retries are exhausted."""
        with self._uow_factory() as uow:
            uow.reports.transition_summary_status(
                report_id,
                [SummaryStatus.PENDING.value, SummaryStatus.GENERATING.value],
                SummaryStatus.FAILED.value,
                error_message=error[:500],
            )
            uow.commit()
        self._activity.log(report_id, "error", "Report generation failed", {"error": error[:200]})
