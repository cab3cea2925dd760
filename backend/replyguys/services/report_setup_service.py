"""
Report setup: fetch the monitored post, title the report, start scraping.
"""
import logging
from typing import Callable, Optional

from ..domain.common.uow import UnitOfWork
from ..domain.reports.models import ReportStatus
from ..domain.reports.ports import ReplyProvider, TaskDispatcher
from ..infra.providers.apify import ProviderRejectedError
from .activity_log import ActivityLogger
from .llm import LLMService
from .report_prompts import TITLE_PROMPT

logger = logging.getLogger(__name__)

_MAX_TITLE_CHARS = 80


def fallback_title(goal: str) -> str:
    words = (goal or "").split()
    return " ".join(words[:5]) or "Reply Analysis"


class ReportSetupService:
    """Move a report from ``setting_up`` to ``pending``."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        provider: ReplyProvider,
        dispatcher: TaskDispatcher,
        activity: ActivityLogger,
        title_llm: Optional[LLMService] = None,
    ):
        self._uow_factory = uow_factory
        self._provider = provider
        self._dispatcher = dispatcher
        self._activity = activity
        self._title_llm = title_llm

    def generate_title(self, goal: str, post_text: str) -> str:
        """Best effort; any model failure falls back to the goal's first words."""
        try:
            llm = self._title_llm or LLMService(use_case="title")
            response = llm.completion_sync(
                messages=[
                    {"role": "user", "content": TITLE_PROMPT.format(goal=goal, post_text=post_text)}
                ],
                allow_fallbacks=False,
                num_retries=1,
            )
            title = LLMService.extract_content(response).strip().strip('"').rstrip(".")
        except Exception as e:
            logger.warning("Title generation failed, using fallback: %s", e)
            return fallback_title(goal)
        return title[:_MAX_TITLE_CHARS] or fallback_title(goal)

    def run(self, report_id: str) -> str:
        """Returns the resulting status, or "skipped"."""
        with self._uow_factory() as uow:
            report = uow.reports.get(report_id)
            if report is None or report.status != ReportStatus.SETTING_UP.value:
                return "skipped"
            conversation_id = report.conversation_id
            goal = report.goal

        self._activity.log(report_id, "setup", "Fetching the original post")
        try:
            post = self._provider.fetch_post(conversation_id)
        except ProviderRejectedError as e:
            return self._fail(report_id, f"Provider rejected post {conversation_id}: {e}")
        if post is None:
            return self._fail(report_id, f"Post {conversation_id} not found")

        title = self.generate_title(goal, post.text)

        with self._uow_factory() as uow:
            uow.reports.update_fields(
                report_id,
                title=title,
                original_text=post.text,
                original_author_handle=post.author_handle,
                original_author_avatar=post.author_avatar,
            )
            ready = uow.reports.transition_status(
                report_id, [ReportStatus.SETTING_UP.value], ReportStatus.PENDING.value
            )
            uow.commit()

        if not ready:
            return "skipped"

        self._activity.log(
            report_id,
            "setup",
            f"Monitoring replies to @{post.author_handle}",
            {"title": title},
        )
        self._dispatcher.dispatch_scrape(report_id)
        return ReportStatus.PENDING.value

    def _fail(self, report_id: str, message: str) -> str:
        logger.error("Setup failed for report %s: %s", report_id, message)
        with self._uow_factory() as uow:
            uow.reports.transition_status(
                report_id,
                [ReportStatus.SETTING_UP.value],
                ReportStatus.FAILED.value,
                error_message=message[:500],
            )
            uow.commit()
        self._activity.log(report_id, "error", "Could not load the original post", {"error": message[:200]})
        return ReportStatus.FAILED.value
