"""Shared test fakes for the reports bounded context.

Services under test take their collaborators through constructor
arguments; these fakes record what was asked of them instead of talking
to Celery, Apify or a model.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Any

from replyguys.domain.reports.models import RootPost, ScrapedReply, ScrapePage
from replyguys.domain.reports.pagination import ReplyQuery
from replyguys.domain.reports.ports import ReplyProvider, TaskDispatcher


class RecordingDispatcher(TaskDispatcher):
    """TaskDispatcher that only records calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple]] = []
        self._lock = threading.Lock()

    def _record(self, name: str, *args: Any) -> str:
        with self._lock:
            self.calls.append((name, args))
            return f"task-{len(self.calls)}"

    def dispatch_setup(self, report_id: str) -> str:
        return self._record("setup", report_id)

    def dispatch_scrape(self, report_id: str) -> str:
        return self._record("scrape", report_id)

    def dispatch_evaluation(self, report_id: str, reply_ids: list[str]) -> str:
        return self._record("evaluation", report_id, list(reply_ids))

    def dispatch_summary(self, report_id: str) -> str:
        return self._record("summary", report_id)

    def dispatch_publication(self, report_id: str) -> str:
        return self._record("publication", report_id)

    def of(self, name: str) -> list[tuple]:
        return [args for kind, args in self.calls if kind == name]


class FakeReplyProvider(ReplyProvider):
    """Serves queued pages in order and records every query."""

    def __init__(self, pages: list[ScrapePage] | None = None, post: RootPost | None = None) -> None:
        self.pages = list(pages or [])
        self.post = post
        self.queries: list[ReplyQuery] = []
        self.error: Exception | None = None

    def fetch_replies(self, query: ReplyQuery, max_items: int) -> ScrapePage:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        if not self.pages:
            return ScrapePage(items=[], requested=max_items, returned_count=0)
        return self.pages.pop(0)

    def fetch_post(self, post_id: str) -> RootPost | None:
        if self.error is not None:
            raise self.error
        return self.post


class PassThroughLimiter:
    """Rate limiter stand-in that never waits."""

    def __init__(self) -> None:
        self.acquired: list[str] = []

    def acquire(self, budget, timeout_s=None) -> float:
        self.acquired.append(budget.key)
        return 0.0


def make_reply(
    reply_id: str,
    text: str = "The export button should support CSV and PDF formats",
    *,
    handle: str | None = None,
    created_at: datetime | None = None,
    followers: int = 100,
    verified: bool = False,
) -> ScrapedReply:
    return ScrapedReply(
        id=reply_id,
        text=text,
        created_at=created_at or datetime(2024, 5, 1, 12, 0, 0),
        author_id=f"u{reply_id}",
        author_handle=f"user{reply_id}" if handle is None else handle,
        author_name=f"User {reply_id}",
        author_followers=followers,
        author_verified=verified,
    )


def make_page(count: int, *, start: int = 1, requested: int = 100, newest: datetime | None = None) -> ScrapePage:
    """A page of ``count`` replies, one minute apart, newest first."""
    newest = newest or datetime(2024, 5, 1, 12, 0, 0)
    items = [
        make_reply(str(start + i), created_at=newest - timedelta(minutes=i))
        for i in range(count)
    ]
    return ScrapePage(items=items, requested=requested, returned_count=count)


def llm_response(content: str) -> SimpleNamespace:
    """Mimic the shape of a LiteLLM completion response."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
