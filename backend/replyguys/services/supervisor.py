"""
Recurring supervisor, run by Celery beat every few minutes.

For every report that is still being worked on it either enforces the
monitoring window or nudges the pipeline forward: re-dispatching setup
that went quiet, re-arming evaluation batches that never finished, and
emitting the next scrape tick.  Every action it takes is re-verified by
the task that receives it, so a sweep racing a worker is harmless.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from ..config import settings
from ..domain.common.uow import UnitOfWork
from ..domain.reports.models import ACTIVE_STATUSES, ReportStatus, SummaryStatus
from ..domain.reports.ports import TaskDispatcher
from ..utils.clock import utcnow
from .activity_log import ActivityLogger
from .scrape_orchestrator import chunked
from .summary_generation_service import timeout_placeholder_summary

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    checked: int = 0
    timed_out: int = 0
    setups_redispatched: int = 0
    evaluations_rearmed: int = 0
    ticks: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class _Candidate:
    report_id: str
    status: str
    created_at: datetime
    updated_at: Optional[datetime]


class ReportSupervisor:
    """Sweep active reports: timeout, recovery, scrape ticks."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        dispatcher: TaskDispatcher,
        activity: ActivityLogger,
    ):
        self._uow_factory = uow_factory
        self._dispatcher = dispatcher
        self._activity = activity

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        now = now or utcnow()
        result = SweepResult()

        with self._uow_factory() as uow:
            candidates = [
                _Candidate(r.id, r.status, r.created_at, r.updated_at)
                for r in uow.reports.list_by_status(ACTIVE_STATUSES)
            ]

        for candidate in candidates:
            result.checked += 1
            try:
                self._supervise(candidate, now, result)
            except Exception as e:
                logger.error(
                    "Supervisor failed on report %s: %s", candidate.report_id, e, exc_info=True
                )
                result.errors.append({"report_id": candidate.report_id, "error": str(e)})

        logger.info(
            "Supervisor sweep: checked=%d timed_out=%d ticks=%d rearmed=%d errors=%d",
            result.checked,
            result.timed_out,
            result.ticks,
            result.evaluations_rearmed,
            len(result.errors),
        )
        return result

    def _supervise(self, candidate: _Candidate, now: datetime, result: SweepResult) -> None:
        window = timedelta(hours=settings.monitoring_window_hours)
        if now - candidate.created_at > window:
            if self.finalize_timeout(candidate.report_id, now):
                result.timed_out += 1
            return

        if candidate.status == ReportStatus.SETTING_UP.value:
            stale_after = timedelta(minutes=settings.setup_stale_minutes)
            last_touch = candidate.updated_at or candidate.created_at
            if now - last_touch > stale_after:
                logger.info("Re-dispatching stale setup for report %s", candidate.report_id)
                self._dispatcher.dispatch_setup(candidate.report_id)
                result.setups_redispatched += 1
            return

        if candidate.status == ReportStatus.SCRAPING.value:
            result.evaluations_rearmed += self._rearm_evaluations(candidate.report_id, now)

        self._dispatcher.dispatch_scrape(candidate.report_id)
        result.ticks += 1

    def _rearm_evaluations(self, report_id: str, now: datetime) -> int:
        cutoff = now - timedelta(minutes=settings.evaluation_stale_minutes)
        with self._uow_factory() as uow:
            stale_ids = uow.replies.list_stale_unevaluated(report_id, cutoff)

        batches = chunked(stale_ids, settings.evaluation_batch_size)
        for batch in batches:
            self._dispatcher.dispatch_evaluation(report_id, batch)
        if stale_ids:
            logger.info(
                "Re-armed %d stale replies in %d batches for report %s",
                len(stale_ids),
                len(batches),
                report_id,
            )
        return len(batches)

    def finalize_timeout(self, report_id: str, now: Optional[datetime] = None) -> bool:
        """Stop a report whose monitoring window elapsed.

        With qualified replies the report completes and synthesis waits for
        an explicit trigger.  Without any, it completes with a placeholder
        summary and never reaches the synthesis model.
        """
        now = now or utcnow()
        active = list(ACTIVE_STATUSES)

        with self._uow_factory() as uow:
            qualified = uow.replies.count_qualified(report_id)
            if qualified > 0:
                won = uow.reports.transition_status(
                    report_id,
                    active,
                    ReportStatus.COMPLETED.value,
                    qualified_count=qualified,
                    completed_at=now,
                )
            else:
                won = uow.reports.transition_status(
                    report_id,
                    active,
                    ReportStatus.COMPLETED.value,
                    qualified_count=0,
                    completed_at=now,
                    summary_status=SummaryStatus.COMPLETED.value,
                    summary=timeout_placeholder_summary().model_dump(exclude_none=True),
                )
            uow.commit()

        if not won:
            return False

        if qualified > 0:
            logger.info("Report %s timed out with %d qualified replies", report_id, qualified)
            self._activity.log(
                report_id,
                "timeout",
                f"Monitoring window ended with {qualified} qualified "
                f"{'reply' if qualified == 1 else 'replies'}",
                {"qualified": qualified},
            )
        else:
            logger.info("Report %s timed out without qualified replies", report_id)
            self._activity.log(
                report_id,
                "timeout",
                "Monitoring window ended without enough quality replies",
                {"qualified": 0},
            )
        return True
