"""
Scrape orchestrator: one tick of two-phase pagination for one report.

A tick reads the report's cursors, fetches one provider page outside
any transaction, then ingests the page and advances the cursors in a
single commit.  New replies are fanned out to evaluation batches, and
while backfilling a full page with fresh rows chains the next tick
immediately.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..config import settings
from ..domain.common.uow import UnitOfWork
from ..domain.reports.models import ReportStatus, ScrapePhase
from ..domain.reports.pagination import build_reply_query, next_phase, should_self_chain
from ..domain.reports.ports import ReplyProvider, TaskDispatcher
from ..infra.providers.apify import ProviderRejectedError
from ..utils.clock import utcnow
from .activity_log import ActivityLogger
from .ingestion_service import IngestionFilters, IngestionService
from .threshold_monitor import ThresholdMonitor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScrapeOutcome:
    status: str  # scraped, skipped, failed
    reason: str = ""
    received: int = 0
    inserted: int = 0
    phase: Optional[str] = None
    chained: bool = False


@dataclass(frozen=True)
class _ReportSnapshot:
    conversation_id: str
    phase: ScrapePhase
    oldest_seen_at: Optional[datetime]
    newest_seen_at: Optional[datetime]
    filters: IngestionFilters
    reply_threshold: int


def chunked(items: list, size: int) -> list[list]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class ScrapeOrchestrator:
    """Run scrape ticks against the reply provider."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        provider: ReplyProvider,
        dispatcher: TaskDispatcher,
        activity: ActivityLogger,
        monitor: ThresholdMonitor,
        ingestion: Optional[IngestionService] = None,
        page_size: Optional[int] = None,
    ):
        self._uow_factory = uow_factory
        self._provider = provider
        self._dispatcher = dispatcher
        self._activity = activity
        self._monitor = monitor
        self._ingestion = ingestion or IngestionService()
        self._page_size = page_size or settings.scrape_page_size

    def _preflight(self, report_id: str) -> tuple[Optional[_ReportSnapshot], str]:
        """Promote pending→scraping and verify the tick should run."""
        with self._uow_factory() as uow:
            report = uow.reports.get(report_id)
            if report is None:
                return None, "not_found"

            if report.status == ReportStatus.PENDING.value:
                if uow.reports.transition_status(
                    report_id, [ReportStatus.PENDING.value], ReportStatus.SCRAPING.value
                ):
                    uow.commit()
                    self._activity.log(report_id, "scrape", "Started collecting replies")
                report = uow.reports.get(report_id)

            if report.status != ReportStatus.SCRAPING.value:
                return None, f"status_{report.status}"

            window = timedelta(hours=settings.monitoring_window_hours)
            if utcnow() - report.created_at > window:
                return None, "timed_out"

            if uow.replies.count_qualified(report_id) >= report.reply_threshold:
                return None, "threshold_met"

            snapshot = _ReportSnapshot(
                conversation_id=report.conversation_id,
                phase=ScrapePhase(report.scrape_phase),
                oldest_seen_at=report.oldest_seen_at,
                newest_seen_at=report.newest_seen_at,
                filters=IngestionFilters.for_report(report),
                reply_threshold=report.reply_threshold,
            )
            uow.commit()
        return snapshot, ""

    def run(self, report_id: str) -> ScrapeOutcome:
        snapshot, reason = self._preflight(report_id)
        if snapshot is None:
            logger.info("Skipping scrape tick for report %s: %s", report_id, reason)
            if reason == "threshold_met":
                # Covers a crash between the last count and the status flip.
                self._monitor.check(report_id)
            return ScrapeOutcome(status="skipped", reason=reason)

        query = build_reply_query(
            snapshot.conversation_id,
            snapshot.phase,
            oldest_seen_at=snapshot.oldest_seen_at,
            newest_seen_at=snapshot.newest_seen_at,
            verified_only=snapshot.filters.verified_only,
            min_followers=snapshot.filters.min_followers,
        )

        try:
            page = self._provider.fetch_replies(query, self._page_size)
        except ProviderRejectedError as e:
            self._fail_report(report_id, str(e))
            return ScrapeOutcome(status="failed", reason="provider_rejected")

        with self._uow_factory() as uow:
            result = self._ingestion.ingest(uow, report_id, page, snapshot.filters)

            if result.oldest is not None:
                uow.reports.advance_oldest_seen(report_id, result.oldest)
            if result.newest is not None:
                uow.reports.advance_newest_seen(report_id, result.newest)

            phase_after = next_phase(snapshot.phase, page.exhausted)
            if phase_after is not snapshot.phase:
                uow.reports.set_scrape_phase(report_id, phase_after.value)

            scraped_total = uow.replies.count_all(report_id)
            uow.reports.update_fields(report_id, scraped_count=scraped_total)
            uow.commit()

        self._log_tick(report_id, snapshot.phase, phase_after, result)

        for batch in chunked(result.inserted_ids, settings.evaluation_batch_size):
            self._dispatcher.dispatch_evaluation(report_id, batch)

        chained = should_self_chain(
            snapshot.phase,
            page_full=not page.exhausted,
            inserted=result.inserted,
            scraped_total=scraped_total,
            reply_threshold=snapshot.reply_threshold,
            cap_multiplier=settings.scrape_cap_multiplier,
        )
        if chained:
            self._dispatcher.dispatch_scrape(report_id)

        return ScrapeOutcome(
            status="scraped",
            received=result.received,
            inserted=result.inserted,
            phase=phase_after.value,
            chained=chained,
        )

    def _log_tick(self, report_id, phase_before, phase_after, result) -> None:
        if result.received == 0:
            self._activity.log(report_id, "scrape", "No new replies found")
        else:
            self._activity.log(
                report_id,
                "scrape",
                f"Found {result.received} {'reply' if result.received == 1 else 'replies'}",
                {"found": result.received, "phase": phase_before.value},
            )
        if result.filtered_out:
            self._activity.log(
                report_id,
                "filter",
                f"Filtered {result.filtered_out} low-signal "
                f"{'reply' if result.filtered_out == 1 else 'replies'}",
                {"filtered": result.filtered_out},
            )
        if result.inserted:
            self._activity.log(
                report_id,
                "insert",
                f"Saved {result.inserted} new {'reply' if result.inserted == 1 else 'replies'}, scoring with AI...",
                {"count": result.inserted},
            )
        if phase_after is not phase_before:
            self._activity.log(
                report_id,
                "scrape",
                "Caught up with existing replies, now watching for new ones",
                {"phase": phase_after.value},
            )

    def _fail_report(self, report_id: str, message: str) -> None:
        logger.error("Provider rejected report %s: %s", report_id, message)
        with self._uow_factory() as uow:
            failed = uow.reports.transition_status(
                report_id,
                [ReportStatus.PENDING.value, ReportStatus.SCRAPING.value],
                ReportStatus.FAILED.value,
                error_message=message[:500],
            )
            uow.commit()
        if failed:
            self._activity.log(
                report_id, "error", "The post could not be scraped; report stopped", {"error": message[:200]}
            )
