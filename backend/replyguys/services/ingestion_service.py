"""
Reply ingestion: filter, deduplicate and insert one scraped page.

Runs inside the caller's unit of work so the inserted rows and the
cursor advance commit together.  Re-ingesting the same page is a no-op.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..domain.common.uow import UnitOfWork
from ..domain.reports.models import ScrapedReply, ScrapePage
from ..domain.reports.pagination import EXCLUDED_AUTHORS
from ..domain.reports.text import is_meaningful

logger = logging.getLogger(__name__)

_EXCLUDED_HANDLES = frozenset(h.lower() for h in EXCLUDED_AUTHORS)


@dataclass
class IngestionResult:
    inserted_ids: List[str] = field(default_factory=list)
    received: int = 0
    filtered_out: int = 0
    duplicates: int = 0
    oldest: Optional[datetime] = None  # extrema of the whole page, filtered rows included
    newest: Optional[datetime] = None

    @property
    def inserted(self) -> int:
        return len(self.inserted_ids)


@dataclass(frozen=True)
class IngestionFilters:
    conversation_id: str
    min_length: int = 0
    verified_only: bool = False
    min_followers: Optional[int] = None

    @classmethod
    def for_report(cls, report) -> "IngestionFilters":
        return cls(
            conversation_id=report.conversation_id,
            min_length=report.min_length or 0,
            verified_only=bool(report.verified_only),
            min_followers=report.min_followers,
        )


def _keep(reply: ScrapedReply, filters: IngestionFilters) -> bool:
    if not reply.author_handle or reply.author_handle.lower() in _EXCLUDED_HANDLES:
        return False
    if reply.id == filters.conversation_id:
        return False
    if filters.verified_only and not reply.author_verified:
        return False
    if filters.min_followers and reply.author_followers < filters.min_followers:
        return False
    return is_meaningful(reply.text, filters.min_length)


class IngestionService:
    """Turn a provider page into pending reply rows."""

    def ingest(
        self,
        uow: UnitOfWork,
        report_id: str,
        page: ScrapePage,
        filters: IngestionFilters,
    ) -> IngestionResult:
        result = IngestionResult(
            received=len(page.items),
            oldest=page.oldest,
            newest=page.newest,
        )
        if not page.items:
            return result

        kept = [reply for reply in page.items if _keep(reply, filters)]
        result.filtered_out = len(page.items) - len(kept)

        unique: List[ScrapedReply] = []
        seen_ids: set[str] = set()
        for reply in kept:
            if reply.id in seen_ids:
                continue
            seen_ids.add(reply.id)
            unique.append(reply)

        existing = uow.replies.existing_ids(report_id, [r.id for r in unique])
        fresh = [r for r in unique if r.id not in existing]

        # A concurrent tick may insert between the lookup and here.
        result.inserted_ids = uow.replies.insert_ignore_conflict(report_id, fresh)
        result.duplicates = len(kept) - result.inserted

        logger.info(
            "Ingested page for report %s: received=%d filtered=%d duplicates=%d inserted=%d",
            report_id,
            result.received,
            result.filtered_out,
            result.duplicates,
            result.inserted,
        )
        return result
