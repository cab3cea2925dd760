"""
Threshold monitor: the single place a report leaves ``scraping`` because
it collected enough qualified replies.

Any number of evaluation batches may observe the crossing at the same
time.  The status change is a compare-and-set on ``status = 'scraping'``,
so exactly one observer wins and only the winner requests synthesis.
"""
import logging
from dataclasses import dataclass
from typing import Callable

from ..domain.common.uow import UnitOfWork
from ..domain.reports.models import ReportStatus
from ..domain.reports.ports import TaskDispatcher
from ..utils.clock import utcnow
from .activity_log import ActivityLogger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdCheck:
    qualified: int
    threshold: int
    triggered: bool


class ThresholdMonitor:
    """Re-derive the qualified count and fire synthesis at most once."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        dispatcher: TaskDispatcher,
        activity: ActivityLogger,
    ):
        self._uow_factory = uow_factory
        self._dispatcher = dispatcher
        self._activity = activity

    def check(self, report_id: str) -> ThresholdCheck:
        with self._uow_factory() as uow:
            report = uow.reports.get(report_id)
            if report is None:
                logger.warning("Threshold check for unknown report %s", report_id)
                return ThresholdCheck(qualified=0, threshold=0, triggered=False)

            threshold = report.reply_threshold
            status = report.status
            qualified = uow.replies.count_qualified(report_id)
            # Cache only; COUNT above is the authority.
            uow.reports.update_fields(report_id, qualified_count=qualified)

            won = False
            if status == ReportStatus.SCRAPING.value and qualified >= threshold:
                won = uow.reports.transition_status(
                    report_id,
                    [ReportStatus.SCRAPING.value],
                    ReportStatus.COMPLETED.value,
                    completed_at=utcnow(),
                )
            uow.commit()

        if won:
            logger.info(
                "Report %s reached threshold (%d/%d); requesting synthesis",
                report_id,
                qualified,
                threshold,
            )
            self._activity.log(
                report_id,
                "complete",
                f"Reached {qualified} qualified replies, generating report",
                {"qualified": qualified, "threshold": threshold},
            )
            self._dispatcher.dispatch_summary(report_id)
        elif qualified >= threshold:
            logger.debug(
                "Report %s already past threshold (status=%s); nothing to do", report_id, status
            )
        elif status == ReportStatus.SCRAPING.value:
            self._activity.log(
                report_id,
                "progress",
                f"{qualified}/{threshold} qualified replies",
                {"qualified": qualified, "threshold": threshold},
            )

        return ThresholdCheck(qualified=qualified, threshold=threshold, triggered=won)
