"""
Celery configuration for background task processing.

Handles report setup, reply scraping, batched evaluation, synthesis and
the recurring supervisor sweep.
"""
import logging

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_ready

from .config import settings

# Create Celery application instance
celery_app = Celery(
    "replyguys",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        'replyguys.tasks.report_tasks',  # Setup, scrape, evaluate, supervisor
        'replyguys.tasks.summary_tasks',  # Synthesis and publication
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone=settings.celery_timezone,
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,  # Redeliver work a crashed worker never finished
    task_time_limit=1800,
    task_soft_time_limit=1500,
    worker_prefetch_multiplier=1,  # Don't prefetch tasks
    worker_concurrency=settings.scrape_concurrency,  # Bounds concurrent scrape pipelines
    broker_connection_retry_on_startup=True,
)

_logger = logging.getLogger(__name__)


@celery_app.on_after_configure.connect
def _log_timezone(sender, **kwargs):
    _logger.info("Celery timezone: %s (enable_utc=%s)", settings.celery_timezone, True)
    if settings.publication_enabled:
        _logger.info("Publication to X enabled via PUBLICATION_ENABLED=true")


@worker_ready.connect
def _init_database(sender, **kwargs):
    """Make sure the tables exist before the first task touches them."""
    from .database import init_db

    try:
        init_db()
    except Exception as e:
        _logger.error("Database initialization failed on worker startup: %s", e, exc_info=True)
        raise


# Task routing: synthesis runs on its own queue with concurrency 1
# Run workers with:
#   celery -A replyguys.celery_app worker -Q celery
#   celery -A replyguys.celery_app worker -Q synthesis -c 1
celery_app.conf.task_routes = {
    'replyguys.tasks.summary_tasks.generate_summary': {'queue': 'synthesis'},
    'replyguys.tasks.summary_tasks.publish_report': {'queue': 'synthesis'},
}

celery_app.conf.result_expires = 86400  # Results expire after 24 hours

# Celery Beat Schedule - Periodic Tasks
celery_app.conf.beat_schedule = {
    # Timeout enforcement, stale-work recovery and scrape ticks
    'poll-active-reports': {
        'task': 'replyguys.tasks.report_tasks.poll_active_reports',
        'schedule': crontab(minute=f'*/{settings.poll_interval_minutes}'),
    },
}
