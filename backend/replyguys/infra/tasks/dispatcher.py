"""Celery implementation of the TaskDispatcher port."""

from __future__ import annotations

from replyguys.domain.reports.ports import TaskDispatcher
from replyguys.tasks.report_tasks import evaluate_reply_batch, scrape_report, setup_report
from replyguys.tasks.summary_tasks import generate_summary, publish_report


class CeleryTaskDispatcher(TaskDispatcher):
    """Dispatch report pipeline tasks via Celery."""

    def dispatch_setup(self, report_id: str) -> str:
        return setup_report.delay(report_id).id

    def dispatch_scrape(self, report_id: str) -> str:
        return scrape_report.delay(report_id).id

    def dispatch_evaluation(self, report_id: str, reply_ids: list[str]) -> str:
        return evaluate_reply_batch.delay(report_id, list(reply_ids)).id

    def dispatch_summary(self, report_id: str) -> str:
        task = generate_summary.apply_async(args=[report_id], queue="synthesis")
        return task.id

    def dispatch_publication(self, report_id: str) -> str:
        task = publish_report.apply_async(args=[report_id], queue="synthesis")
        return task.id
