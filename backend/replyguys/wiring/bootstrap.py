"""Dependency injection bootstrap: the single place that binds ports to adapters.

Celery tasks never construct repositories, providers or LLM clients
directly; they ask for a fully wired service here.

Example usage in a task::

    from replyguys.wiring.bootstrap import get_scrape_orchestrator

    outcome = get_scrape_orchestrator().run(report_id)
"""

from __future__ import annotations

from typing import Callable

from replyguys.database import SessionLocal
from replyguys.domain.common.uow import UnitOfWork
from replyguys.domain.reports.ports import ReplyProvider, TaskDispatcher
from replyguys.infra.db.uow import SqlUnitOfWork
from replyguys.infra.providers.apify import ApifyReplyProvider
from replyguys.services.activity_log import ActivityLogger
from replyguys.services.evaluation_pipeline import EvaluationPipeline
from replyguys.services.llm import LLMService
from replyguys.services.publication_service import PublicationService, XApiClient
from replyguys.services.reply_evaluation_service import ReplyEvaluationService
from replyguys.services.report_setup_service import ReportSetupService
from replyguys.services.report_synthesis_service import ReportSynthesisService
from replyguys.services.scrape_orchestrator import ScrapeOrchestrator
from replyguys.services.summary_generation_service import SummaryGenerationService
from replyguys.services.supervisor import ReportSupervisor
from replyguys.services.threshold_monitor import ThresholdMonitor
from replyguys.use_cases.reports.create_report import CreateReportUseCase


# ── Unit of Work ─────────────────────────────────────────────────────────


def get_uow() -> SqlUnitOfWork:
    """Return a fresh SqlUnitOfWork bound to SessionLocal."""
    return SqlUnitOfWork(SessionLocal)


def get_uow_factory() -> Callable[[], UnitOfWork]:
    return get_uow


def get_activity_logger() -> ActivityLogger:
    return ActivityLogger(SessionLocal)


# ── Task Dispatchers ────────────────────────────────────────────────────

_task_dispatcher: TaskDispatcher | None = None


def get_task_dispatcher() -> TaskDispatcher:
    """Return a singleton CeleryTaskDispatcher."""
    global _task_dispatcher
    if _task_dispatcher is None:
        # Imported lazily: the task modules import this module at call time.
        from replyguys.infra.tasks.dispatcher import CeleryTaskDispatcher

        _task_dispatcher = CeleryTaskDispatcher()
    return _task_dispatcher


# ── Providers ────────────────────────────────────────────────────────────

_reply_provider: ApifyReplyProvider | None = None


def get_reply_provider() -> ReplyProvider:
    """Return a singleton ApifyReplyProvider (shares one HTTP session)."""
    global _reply_provider
    if _reply_provider is None:
        _reply_provider = ApifyReplyProvider()
    return _reply_provider


# ── Services ─────────────────────────────────────────────────────────────


def get_threshold_monitor() -> ThresholdMonitor:
    return ThresholdMonitor(get_uow_factory(), get_task_dispatcher(), get_activity_logger())


def get_report_setup_service() -> ReportSetupService:
    return ReportSetupService(
        uow_factory=get_uow_factory(),
        provider=get_reply_provider(),
        dispatcher=get_task_dispatcher(),
        activity=get_activity_logger(),
        title_llm=LLMService(use_case="title"),
    )


def get_scrape_orchestrator() -> ScrapeOrchestrator:
    return ScrapeOrchestrator(
        uow_factory=get_uow_factory(),
        provider=get_reply_provider(),
        dispatcher=get_task_dispatcher(),
        activity=get_activity_logger(),
        monitor=get_threshold_monitor(),
    )


def get_evaluation_pipeline() -> EvaluationPipeline:
    return EvaluationPipeline(
        uow_factory=get_uow_factory(),
        evaluator=ReplyEvaluationService(LLMService(use_case="scoring")),
        monitor=get_threshold_monitor(),
        activity=get_activity_logger(),
    )


def get_report_synthesis_service() -> ReportSynthesisService:
    return ReportSynthesisService(
        uow_factory=get_uow_factory(),
        generator=SummaryGenerationService(LLMService(use_case="synthesis")),
        dispatcher=get_task_dispatcher(),
        activity=get_activity_logger(),
    )


def get_publication_service() -> PublicationService:
    return PublicationService(
        uow_factory=get_uow_factory(),
        client=XApiClient(),
        activity=get_activity_logger(),
    )


def get_report_supervisor() -> ReportSupervisor:
    return ReportSupervisor(get_uow_factory(), get_task_dispatcher(), get_activity_logger())


# ── Use Cases ────────────────────────────────────────────────────────────


def get_create_report_use_case() -> CreateReportUseCase:
    """Build a CreateReportUseCase wired with infrastructure adapters."""
    return CreateReportUseCase(dispatcher=get_task_dispatcher())
