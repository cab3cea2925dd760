"""
Celery tasks for report synthesis and publication.

Both are routed to the ``synthesis`` queue, which is meant to be served
by a single worker process.
"""
import logging
import time
from datetime import datetime

from ..celery_app import celery_app
from ..config import settings
from ..services.llm import LLMError
from ..services.publication_service import PublicationError
from ..services.rate_limiter import RateLimitTimeoutError
from ..services.summary_generation_service import SummaryParseError

logger = logging.getLogger(__name__)

SYNTHESIS_RETRY_ERRORS = (LLMError, SummaryParseError, RateLimitTimeoutError, ConnectionError, TimeoutError)


@celery_app.task(
    bind=True,
    max_retries=settings.synthesis_max_retries,
    name='replyguys.tasks.summary_tasks.generate_summary',
)
def generate_summary(self, report_id: str):
    """
    Generate the final summary for a completed report.

    Duplicate deliveries are collapsed by the summary status claim; once
    retries run out the summary is marked failed.
    """
    logger.info("=" * 60)
    logger.info("TASK: Generate Summary | report=%s attempt=%d", report_id, self.request.retries + 1)
    logger.info("=" * 60)

    from ..wiring.bootstrap import get_report_synthesis_service

    service = get_report_synthesis_service()
    start_time = time.time()
    try:
        status = service.run(report_id)
    except SYNTHESIS_RETRY_ERRORS as e:
        if self.request.retries >= self.max_retries:
            logger.error("Synthesis for report %s exhausted retries: %s", report_id, e, exc_info=True)
            service.mark_failed(report_id, str(e))
            raise
        logger.warning("Synthesis for report %s failed, retrying: %s", report_id, e)
        raise self.retry(exc=e, countdown=min(600, 60 * (2 ** self.request.retries)))

    duration = time.time() - start_time
    logger.info("Summary for report %s: %s (%.2fs)", report_id, status, duration)
    logger.info("=" * 60)
    return {
        'report_id': report_id,
        'summary_status': status,
        'duration_seconds': round(duration, 2),
        'timestamp': datetime.now().isoformat(),
    }


@celery_app.task(
    bind=True,
    max_retries=2,
    name='replyguys.tasks.summary_tasks.publish_report',
)
def publish_report(self, report_id: str):
    """
    Post the report recap to X as a quote of the original post.
    """
    logger.info("TASK: Publish Report | report=%s", report_id)

    if not settings.publication_enabled:
        logger.info("Publication disabled; skipping report %s", report_id)
        return {'report_id': report_id, 'publication_status': 'skipped', 'reason': 'disabled'}

    from ..wiring.bootstrap import get_publication_service

    try:
        status = get_publication_service().publish(report_id)
    except PublicationError as e:
        if self.request.retries >= self.max_retries:
            logger.error("Publication for report %s exhausted retries: %s", report_id, e)
            raise
        raise self.retry(exc=e, countdown=120)

    logger.info("Publication for report %s: %s", report_id, status)
    return {'report_id': report_id, 'publication_status': status}
