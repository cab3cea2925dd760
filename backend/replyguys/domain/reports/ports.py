"""Ports (abstract interfaces) for the reports domain.

These define WHAT the pipeline needs from the outside world without
specifying HOW it's provided.  Concrete implementations live in infra/.

Repositories receive their session through the UnitOfWork, not through
method parameters.
"""

from __future__ import annotations

import abc
from collections.abc import Iterable, Sequence
from datetime import datetime

from .models import ReplyVerdict, RootPost, ScrapedReply, ScrapePage
from .pagination import ReplyQuery


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class ReportRepository(abc.ABC):
    """Persist reports and apply conditional state transitions."""

    @abc.abstractmethod
    def create(self, *, report_id: str, **fields) -> object:
        ...

    @abc.abstractmethod
    def get(self, report_id: str) -> object | None:
        ...

    @abc.abstractmethod
    def list_by_status(self, statuses: Iterable[str]) -> list[object]:
        ...

    @abc.abstractmethod
    def transition_status(
        self, report_id: str, from_statuses: Iterable[str], to_status: str, **fields
    ) -> bool:
        """Compare-and-set the report status.

        Returns True only for the caller whose update matched a row.
        """
        ...

    @abc.abstractmethod
    def transition_summary_status(
        self, report_id: str, from_statuses: Iterable[str], to_status: str, **fields
    ) -> bool:
        ...

    @abc.abstractmethod
    def transition_publication_status(
        self, report_id: str, from_statuses: Iterable[str | None], to_status: str, **fields
    ) -> bool:
        ...

    @abc.abstractmethod
    def advance_oldest_seen(self, report_id: str, value: datetime) -> bool:
        """Move ``oldest_seen_at`` earlier; never later."""
        ...

    @abc.abstractmethod
    def advance_newest_seen(self, report_id: str, value: datetime) -> bool:
        """Move ``newest_seen_at`` later; never earlier."""
        ...

    @abc.abstractmethod
    def set_scrape_phase(self, report_id: str, phase: str) -> None:
        ...

    @abc.abstractmethod
    def update_fields(self, report_id: str, **fields) -> None:
        ...


class ReplyRepository(abc.ABC):
    """Persist replies and their evaluation state."""

    @abc.abstractmethod
    def existing_ids(self, report_id: str, reply_ids: Sequence[str]) -> set[str]:
        ...

    @abc.abstractmethod
    def insert_ignore_conflict(
        self, report_id: str, replies: Sequence[ScrapedReply]
    ) -> list[str]:
        """Insert rows as pending; rows already present are skipped.

        Returns the ids actually inserted by this call.
        """
        ...

    @abc.abstractmethod
    def get_many(self, report_id: str, reply_ids: Sequence[str]) -> list[object]:
        ...

    @abc.abstractmethod
    def claim_for_evaluation(
        self, report_id: str, reply_ids: Sequence[str], stale_before: datetime
    ) -> list[str]:
        """Move pending (or stale evaluating) replies to evaluating."""
        ...

    @abc.abstractmethod
    def release(self, report_id: str, reply_ids: Sequence[str]) -> None:
        """Return claimed replies to pending so a retry picks them up."""
        ...

    @abc.abstractmethod
    def record_verdict(self, report_id: str, verdict: ReplyVerdict) -> None:
        ...

    @abc.abstractmethod
    def count_all(self, report_id: str) -> int:
        ...

    @abc.abstractmethod
    def count_qualified(self, report_id: str) -> int:
        ...

    @abc.abstractmethod
    def list_qualified(self, report_id: str) -> list[object]:
        """Included replies, best weighted score first."""
        ...

    @abc.abstractmethod
    def list_stale_unevaluated(self, report_id: str, older_than: datetime) -> list[str]:
        ...


class ActivityRepository(abc.ABC):
    """Append-only progress log."""

    @abc.abstractmethod
    def add(self, report_id: str, key: str, message: str, meta: dict | None = None) -> None:
        ...

    @abc.abstractmethod
    def list_for_report(self, report_id: str, limit: int = 100) -> list[object]:
        ...


# ---------------------------------------------------------------------------
# Outbound services
# ---------------------------------------------------------------------------


class ReplyProvider(abc.ABC):
    """Scraping provider for conversation replies."""

    @abc.abstractmethod
    def fetch_replies(self, query: ReplyQuery, max_items: int) -> ScrapePage:
        ...

    @abc.abstractmethod
    def fetch_post(self, post_id: str) -> RootPost | None:
        ...


class TaskDispatcher(abc.ABC):
    """Enqueue background pipeline work."""

    @abc.abstractmethod
    def dispatch_setup(self, report_id: str) -> str:
        ...

    @abc.abstractmethod
    def dispatch_scrape(self, report_id: str) -> str:
        ...

    @abc.abstractmethod
    def dispatch_evaluation(self, report_id: str, reply_ids: list[str]) -> str:
        ...

    @abc.abstractmethod
    def dispatch_summary(self, report_id: str) -> str:
        ...

    @abc.abstractmethod
    def dispatch_publication(self, report_id: str) -> str:
        ...
