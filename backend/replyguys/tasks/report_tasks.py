"""
Celery tasks for the reply collection pipeline.

Provides background tasks for:
- Report setup (root post fetch, title, first scrape tick)
- Scrape ticks (one provider page per execution)
- Batched reply evaluation under the global scoring budget
- The recurring supervisor sweep (beat, every few minutes)

Every task re-reads the report before acting, so duplicate or late
deliveries are harmless.
"""
import logging
import time
from datetime import datetime

from ..celery_app import celery_app
from ..config import settings
from ..infra.providers.apify import ProviderError
from ..services.llm import LLMError
from ..services.rate_limiter import RateLimitTimeoutError

logger = logging.getLogger(__name__)

# Failures worth another attempt; anything else is a bug and surfaces immediately.
TRANSIENT_ERRORS = (ProviderError, LLMError, RateLimitTimeoutError, ConnectionError, TimeoutError)


def _retry_countdown(retries: int, base: int = 15, cap: int = 300) -> int:
    return min(cap, base * (2 ** retries))


def _log_exhausted(report_id: str, stage: str, error: Exception) -> None:
    from ..wiring.bootstrap import get_activity_logger

    get_activity_logger().log(
        report_id,
        "error",
        f"{stage} gave up after repeated failures",
        {"error": str(error)[:200]},
    )


@celery_app.task(
    bind=True,
    max_retries=settings.scrape_max_retries,
    name='replyguys.tasks.report_tasks.setup_report',
)
def setup_report(self, report_id: str):
    """
    Fetch the monitored post, title the report and start scraping.

    Returns:
        Dict with the resulting report status
    """
    logger.info("=" * 60)
    logger.info("TASK: Report Setup | report=%s", report_id)
    logger.info("=" * 60)

    from ..wiring.bootstrap import get_report_setup_service

    try:
        status = get_report_setup_service().run(report_id)
    except TRANSIENT_ERRORS as e:
        if self.request.retries >= self.max_retries:
            logger.error("Setup for report %s exhausted retries: %s", report_id, e, exc_info=True)
            _log_exhausted(report_id, "Setup", e)
            raise
        logger.warning("Setup for report %s failed, retrying: %s", report_id, e)
        raise self.retry(exc=e, countdown=_retry_countdown(self.request.retries))

    logger.info("Setup finished for report %s: %s", report_id, status)
    return {
        'report_id': report_id,
        'status': status,
        'timestamp': datetime.now().isoformat(),
    }


@celery_app.task(
    bind=True,
    max_retries=settings.scrape_max_retries,
    name='replyguys.tasks.report_tasks.scrape_report',
)
def scrape_report(self, report_id: str):
    """
    Run one scrape tick for a report.

    Fetches a single provider page in the current phase, ingests it,
    advances the cursors and fans out evaluation batches.
    """
    logger.info("TASK: Scrape tick | report=%s attempt=%d", report_id, self.request.retries + 1)

    from ..wiring.bootstrap import get_scrape_orchestrator

    start_time = time.time()
    try:
        outcome = get_scrape_orchestrator().run(report_id)
    except TRANSIENT_ERRORS as e:
        if self.request.retries >= self.max_retries:
            logger.error("Scrape for report %s exhausted retries: %s", report_id, e, exc_info=True)
            _log_exhausted(report_id, "Scraping", e)
            raise
        logger.warning("Scrape for report %s failed, retrying: %s", report_id, e)
        raise self.retry(exc=e, countdown=_retry_countdown(self.request.retries))

    duration = time.time() - start_time
    logger.info(
        "Scrape tick for report %s: %s%s received=%d inserted=%d phase=%s chained=%s (%.2fs)",
        report_id,
        outcome.status,
        f" ({outcome.reason})" if outcome.reason else "",
        outcome.received,
        outcome.inserted,
        outcome.phase,
        outcome.chained,
        duration,
    )
    return {
        'report_id': report_id,
        'status': outcome.status,
        'reason': outcome.reason,
        'received': outcome.received,
        'inserted': outcome.inserted,
        'phase': outcome.phase,
        'chained': outcome.chained,
        'duration_seconds': round(duration, 2),
    }


@celery_app.task(
    bind=True,
    max_retries=settings.evaluation_max_retries,
    name='replyguys.tasks.report_tasks.evaluate_reply_batch',
)
def evaluate_reply_batch(self, report_id: str, reply_ids: list):
    """
    Score one batch of replies for a report.

    Replies that fail scoring are left pending; the task retries and the
    claim step skips everything already evaluated.
    """
    logger.info(
        "TASK: Evaluate batch | report=%s replies=%d attempt=%d",
        report_id,
        len(reply_ids),
        self.request.retries + 1,
    )

    from ..services.evaluation_pipeline import EvaluationIncompleteError
    from ..wiring.bootstrap import get_evaluation_pipeline

    try:
        outcome = get_evaluation_pipeline().evaluate_batch(report_id, reply_ids)
    except TRANSIENT_ERRORS + (EvaluationIncompleteError,) as e:
        if self.request.retries >= self.max_retries:
            # Leftover replies stay pending; the supervisor re-arms them later.
            logger.error("Evaluation for report %s exhausted retries: %s", report_id, e)
            _log_exhausted(report_id, "Scoring", e)
            raise
        logger.warning("Evaluation for report %s incomplete, retrying: %s", report_id, e)
        raise self.retry(exc=e, countdown=_retry_countdown(self.request.retries, base=20))

    logger.info(
        "Evaluated batch for report %s: %s%s evaluated=%d included=%d qualified=%d triggered=%s",
        report_id,
        outcome.status,
        f" ({outcome.reason})" if outcome.reason else "",
        outcome.evaluated,
        outcome.included,
        outcome.qualified,
        outcome.triggered,
    )
    return {
        'report_id': report_id,
        'status': outcome.status,
        'reason': outcome.reason,
        'evaluated': outcome.evaluated,
        'prefiltered': outcome.prefiltered,
        'included': outcome.included,
        'qualified': outcome.qualified,
        'triggered': outcome.triggered,
    }


@celery_app.task(name='replyguys.tasks.report_tasks.poll_active_reports')
def poll_active_reports():
    """
    Supervisor sweep over every active report.

    Enforces the monitoring window, recovers stale setup and evaluation
    work, and emits the next scrape tick.  Should run every few minutes.

    Returns:
        Dict with sweep statistics
    """
    logger.info("=" * 60)
    logger.info("TASK: Poll Active Reports")
    logger.info("=" * 60)

    from ..wiring.bootstrap import get_report_supervisor

    start_time = time.time()
    result = get_report_supervisor().sweep()
    duration = time.time() - start_time

    logger.info("Sweep complete in %.2fs", duration)
    logger.info("  Checked: %d", result.checked)
    logger.info("  Timed out: %d", result.timed_out)
    logger.info("  Scrape ticks: %d", result.ticks)
    logger.info("  Setups re-dispatched: %d", result.setups_redispatched)
    logger.info("  Evaluation batches re-armed: %d", result.evaluations_rearmed)
    for error in result.errors:
        logger.warning("  - %s: %s", error['report_id'], error['error'])
    logger.info("=" * 60)

    return {
        'checked': result.checked,
        'timed_out': result.timed_out,
        'ticks': result.ticks,
        'setups_redispatched': result.setups_redispatched,
        'evaluations_rearmed': result.evaluations_rearmed,
        'errors': len(result.errors),
        'duration_seconds': round(duration, 2),
        'timestamp': datetime.now().isoformat(),
    }
